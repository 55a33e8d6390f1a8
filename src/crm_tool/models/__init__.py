"""Database models"""
from src.crm_tool.models.base import Base
from src.crm_tool.models.client import Client, ClientStatus

__all__ = ["Base", "Client", "ClientStatus"]
