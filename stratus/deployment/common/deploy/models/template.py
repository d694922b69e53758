from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from stratus.common.constants import TEMPLATE_FORMAT_VERSION
from stratus.common.utils import canonical_json

# Template sections that are merged by logical name
MERGEABLE_SECTIONS = ("Parameters", "Conditions", "Resources", "Outputs", "Metadata")


def ref(logical_name: str) -> dict[str, Any]:
    return {"Ref": logical_name}


def get_att(logical_name: str, attribute: str) -> dict[str, Any]:
    return {"Fn::GetAtt": [logical_name, attribute]}


def sub(value: str) -> dict[str, Any]:
    return {"Fn::Sub": value}


def join(delimiter: str, values: list[Any]) -> dict[str, Any]:
    return {"Fn::Join": [delimiter, values]}


def base64(value: Any) -> dict[str, Any]:
    return {"Fn::Base64": value}


def new_stack_parameter(
    param_type: str, description: str, default: Optional[str], allowed_pattern: str, min_length: int
) -> dict[str, Any]:
    parameter: dict[str, Any] = {
        "Type": param_type,
        "Description": description,
    }
    if default is not None:
        parameter["Default"] = default
    if allowed_pattern:
        parameter["AllowedPattern"] = allowed_pattern
    if min_length:
        parameter["MinLength"] = min_length
    return parameter


@dataclass(frozen=True)
class MergeConflict:
    section: str
    logical_name: str
    existing: Any
    incoming: Any

    def __str__(self) -> str:
        return (
            f"{self.section} entry {self.logical_name} is already defined as {describe_entry(self.existing)}, "
            f"cannot redefine it as {describe_entry(self.incoming)}"
        )


def describe_entry(entry: Any) -> str:
    if isinstance(entry, dict) and "Type" in entry:
        return f"{entry['Type']}({canonical_json(entry)})"
    return canonical_json(entry)


class Template:
    """
    In-memory CloudFormation template.

    Every section is keyed by logical name. Names are unique: adding or merging an entry whose
    logical name already exists is only accepted when the content is identical, otherwise the
    operation fails with a `MergeConflictError` and the template is left untouched.
    """

    def __init__(self, description: str = "") -> None:
        self.description = description
        self.parameters: dict[str, Any] = {}
        self.conditions: dict[str, Any] = {}
        self.resources: dict[str, dict[str, Any]] = {}
        self.outputs: dict[str, Any] = {}
        self.metadata: dict[str, Any] = {}

    def _section(self, section: str) -> dict[str, Any]:
        return {
            "Parameters": self.parameters,
            "Conditions": self.conditions,
            "Resources": self.resources,
            "Outputs": self.outputs,
            "Metadata": self.metadata,
        }[section]

    def add_resource(
        self,
        logical_name: str,
        resource_type: str,
        properties: Optional[dict[str, Any]] = None,
        depends_on: Optional[list[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        definition: dict[str, Any] = {"Type": resource_type}
        if properties is not None:
            definition["Properties"] = properties
        if depends_on:
            definition["DependsOn"] = list(depends_on)
        if metadata:
            definition["Metadata"] = metadata
        return self.add_resource_definition(logical_name, definition)

    def add_resource_definition(self, logical_name: str, definition: dict[str, Any]) -> dict[str, Any]:
        self._add("Resources", logical_name, definition)
        return self.resources[logical_name]

    def add_output(self, name: str, value: Any, description: str = "") -> None:
        output: dict[str, Any] = {"Value": value}
        if description:
            output["Description"] = description
        self._add("Outputs", name, output)

    def add_parameter(self, name: str, parameter: dict[str, Any]) -> None:
        self._add("Parameters", name, parameter)

    def add_condition(self, name: str, condition: dict[str, Any]) -> None:
        self._add("Conditions", name, condition)

    def _add(self, section: str, logical_name: str, definition: Any) -> None:
        entries = self._section(section)
        if logical_name in entries:
            if canonical_json(entries[logical_name]) == canonical_json(definition):
                return
            raise MergeConflictError([MergeConflict(section, logical_name, entries[logical_name], definition)])
        entries[logical_name] = definition

    def remove_resource(self, logical_name: str) -> None:
        self.resources.pop(logical_name, None)

    def resources_of_type(self, resource_type: str) -> Iterator[tuple[str, dict[str, Any]]]:
        for logical_name, definition in self.resources.items():
            if definition.get("Type") == resource_type:
                yield logical_name, definition

    def merge(self, fragment: Template) -> None:
        """
        Safe-merge `fragment` into this template.

        All conflicts are collected before anything is copied, a failing merge leaves this template
        unchanged.
        """
        conflicts = safe_merge_conflicts(fragment, self)
        if conflicts:
            raise MergeConflictError(conflicts)
        for section in MERGEABLE_SECTIONS:
            target = self._section(section)
            for logical_name, definition in fragment._section(section).items():
                if logical_name not in target:
                    target[logical_name] = copy.deepcopy(definition)
        if not self.description and fragment.description:
            self.description = fragment.description

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {"AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION}
        if self.description:
            document["Description"] = self.description
        for section in MERGEABLE_SECTIONS:
            entries = self._section(section)
            if entries:
                document[section] = entries
        return document

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> Template:
        template = cls(document.get("Description", ""))
        for section in MERGEABLE_SECTIONS:
            template._section(section).update(copy.deepcopy(document.get(section, {})))
        return template

    @classmethod
    def from_json(cls, serialized: str) -> Template:
        return cls.from_dict(json.loads(serialized))

    def __repr__(self) -> str:
        return f"Template(description={self.description}, resources={list(self.resources.keys())})"


def safe_merge_conflicts(source: Template, target: Template) -> list[MergeConflict]:
    conflicts: list[MergeConflict] = []
    for section in MERGEABLE_SECTIONS:
        target_entries = target._section(section)  # pylint: disable=protected-access
        for logical_name, definition in source._section(section).items():  # pylint: disable=protected-access
            if logical_name not in target_entries:
                continue
            if canonical_json(target_entries[logical_name]) != canonical_json(definition):
                conflicts.append(MergeConflict(section, logical_name, target_entries[logical_name], definition))
    return conflicts


class MergeConflictError(Exception):
    def __init__(self, conflicts: list[MergeConflict]) -> None:
        self.conflicts = conflicts
        super().__init__("Failed to merge templates: " + "; ".join(str(conflict) for conflict in conflicts))

    @property
    def logical_names(self) -> list[str]:
        return [conflict.logical_name for conflict in self.conflicts]
