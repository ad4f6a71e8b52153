from remitdesk.infrastructure.persistence.sqlalchemy.config.base import Base, TimestampMixin

__all__ = ["Base", "TimestampMixin"]
