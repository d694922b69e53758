from dataclasses import dataclass, field
from typing import Any, Optional

from stratus.common.constants import DEFAULT_FUNCTION_MEMORY_SIZE, DEFAULT_FUNCTION_TIMEOUT, FUNCTION_RUNTIME


@dataclass
class FunctionOptions:
    memory_size: int = DEFAULT_FUNCTION_MEMORY_SIZE
    timeout: int = DEFAULT_FUNCTION_TIMEOUT
    description: str = ""
    environment: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    reserved_concurrent_executions: Optional[int] = None

    def __post_init__(self) -> None:
        if not 128 <= self.memory_size <= 10240:
            raise ValueError("memory_size must be between 128 and 10240 MB")
        if not 1 <= self.timeout <= 900:
            raise ValueError("timeout must be between 1 and 900 seconds")
        for key in self.environment:
            if "AWS_REGION" in key:  # AWS_REGION is a reserved environment variable
                raise ValueError("environment cannot contain AWS_REGION")

    def function_properties(self, handler: str, role: Any, code_location: dict[str, Any]) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "Code": dict(code_location),
            "Handler": handler,
            "MemorySize": self.memory_size,
            "Role": role,
            "Runtime": FUNCTION_RUNTIME,
            "Timeout": self.timeout,
            "Environment": {"Variables": dict(self.environment)},
        }
        if self.description:
            properties["Description"] = self.description
        if self.tags:
            properties["Tags"] = [{"Key": key, "Value": value} for key, value in sorted(self.tags.items())]
        if self.reserved_concurrent_executions is not None:
            properties["ReservedConcurrentExecutions"] = self.reserved_concurrent_executions
        return properties
