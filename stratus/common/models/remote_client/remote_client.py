from abc import ABC, abstractmethod
from typing import Any, Optional


class RemoteClient(ABC):
    """
    Boundary towards the cloud provider. Every call is blocking and one-shot unless the client was
    configured with a retry policy.
    """

    @property
    @abstractmethod
    def session(self) -> Any:
        raise NotImplementedError()

    @abstractmethod
    def get_iam_role(self, role_name: str) -> str:
        raise NotImplementedError()

    @abstractmethod
    def describe_stack(self, stack_name: str) -> Optional[dict[str, Any]]:
        raise NotImplementedError()

    @abstractmethod
    def get_caller_account(self) -> str:
        raise NotImplementedError()

    @abstractmethod
    def upload_resource(self, bucket: str, key: str, filename: str) -> Optional[str]:
        raise NotImplementedError()

    @abstractmethod
    def create_or_update_stack(
        self,
        stack_name: str,
        template_url: str,
        parameters: dict[str, str],
        tags: dict[str, str],
    ) -> dict[str, Any]:
        raise NotImplementedError()
