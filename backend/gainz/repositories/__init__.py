from gainz.repositories.credentials import CredentialStore, SqlAlchemyCredentialStore

__all__ = ["CredentialStore", "SqlAlchemyCredentialStore"]
