from .sqlalchemy_key_value_store import SqlAlchemyKeyValueStore

__all__ = ["SqlAlchemyKeyValueStore"]
