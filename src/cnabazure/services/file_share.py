"""State and outputs store backed by an Azure file share."""

from abc import ABC, abstractmethod

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.fileshare import ShareClient

from cnabazure.errors import ConfigurationError, DriverError


class StateStore(ABC):
    """Share-relative file access used to recover bundle outputs."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def read(self, path: str) -> str:
        pass

    @abstractmethod
    def delete(self, path: str):
        pass


class AzureFileShareStore(StateStore):
    def __init__(self, account_name: str, account_key: str, share_name: str, logger, share_client_class=ShareClient):
        self.account_name = account_name
        self.share_name = share_name
        self.logger = logger
        self.share = share_client_class(
            account_url=f"https://{account_name}.file.core.windows.net",
            share_name=share_name,
            credential=account_key,
        )

        try:
            self.share.get_share_properties()
        except ResourceNotFoundError as exc:
            raise ConfigurationError(
                f"File share {share_name} does not exist in storage account {account_name}"
            ) from exc
        except AzureError as exc:
            raise DriverError(
                f"Failed to access file share {share_name} in storage account {account_name}: {exc}"
            ) from exc

    def exists(self, path: str) -> bool:
        try:
            return self.share.get_file_client(path).exists()
        except AzureError as exc:
            raise DriverError(f"Failed to check {path} in file share {self.share_name}: {exc}") from exc

    def read(self, path: str) -> str:
        self.logger.debug("Reading %s from file share %s", path, self.share_name)
        try:
            content = self.share.get_file_client(path).download_file().readall()
        except AzureError as exc:
            raise DriverError(f"Failed to read {path} from file share {self.share_name}: {exc}") from exc
        return content.decode("utf-8", errors="surrogateescape")

    def delete(self, path: str):
        self.logger.debug("Deleting %s from file share %s", path, self.share_name)
        try:
            self.share.get_file_client(path).delete_file()
        except AzureError as exc:
            raise DriverError(f"Failed to delete {path} from file share {self.share_name}: {exc}") from exc
