from abc import ABC, abstractmethod
from typing import Any

from stratus.deployment.common.deploy.models.template import Template


class APIGateway(ABC):
    """
    HTTP gateway sub-provisioner. Exports its resources into an empty template fragment which the
    template builder safe-merges into the service template.
    """

    @abstractmethod
    def marshal(
        self,
        service_name: str,
        session: Any,
        code_location: dict[str, Any],
        role_map: dict[str, Any],
        template: Template,
        noop: bool,
    ) -> None:
        raise NotImplementedError()
