from habits.providers.base import StorageProvider
from habits.providers.django_orm import DjangoStorageProvider
from habits.providers.memory import InMemoryStorageProvider

__all__ = ["StorageProvider", "DjangoStorageProvider", "InMemoryStorageProvider"]
