from .base import Base
from .asset import Asset
from .customer import Customer
from .event import Event
from .user import User
from .app_log import AppLog
from .route import Route
from .code_counter import CodeCounter

__all__ = ["Base", "Asset", "Customer", "Event", "User", "AppLog", "Route", "CodeCounter"]
