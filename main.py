"""
RemitDesk API entry point.

The application is assembled in remitdesk/main.py and imported here so that
``uvicorn main:app`` works from the repository root.
"""

from remitdesk.main import app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
