from typing import Any, Iterator

from stratus.deployment.common.deploy.models.template import Template


def referenced_names(value: Any) -> Iterator[str]:
    """
    Logical names referenced by `Ref` and `Fn::GetAtt` anywhere inside `value`.
    """
    if isinstance(value, dict):
        for key, item in value.items():
            if key == "Ref" and isinstance(item, str):
                yield item
            elif key == "Fn::GetAtt" and isinstance(item, list) and item:
                yield item[0]
            else:
                yield from referenced_names(item)
    elif isinstance(value, list):
        for item in value:
            yield from referenced_names(item)


def template_edges(template: Template) -> list[tuple[str, str, str]]:
    edges: set[tuple[str, str, str]] = set()
    for logical_name, definition in template.resources.items():
        depends_on = definition.get("DependsOn", [])
        if isinstance(depends_on, str):
            depends_on = [depends_on]
        for dependency in depends_on:
            edges.add((logical_name, dependency, "DependsOn"))
        for referenced in referenced_names(definition.get("Properties", {})):
            if referenced in template.resources and referenced != logical_name:
                edges.add((logical_name, referenced, "Ref"))
    return sorted(edges)


def describe_template(template: Template, title: str) -> str:
    """
    Render the resources of `template` and their references as a Graphviz DOT graph.
    """
    lines = [f'digraph "{_escape(title)}" {{', "  rankdir=LR;", "  node [shape=box];"]
    for logical_name, definition in sorted(template.resources.items()):
        label = f"{logical_name}\\n{definition.get('Type', '')}"
        lines.append(f'  "{_escape(logical_name)}" [label="{_escape(label)}"];')
    for source, target, kind in template_edges(template):
        style = "dashed" if kind == "DependsOn" else "solid"
        lines.append(f'  "{_escape(source)}" -> "{_escape(target)}" [style={style}];')
    lines.append("}")
    return "\n".join(lines) + "\n"


def _escape(value: str) -> str:
    return value.replace('"', '\\"')
