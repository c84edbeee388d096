"""
Rendering helpers shared by the backends.

- Frontmatter emission (stable key order, YAML via PyYAML)
- Markdown documents carrying the generated marker
- Section documents (AGENTS.md, CLAUDE.md, ...) rendered with Jinja2
- Deterministic rule ordering for concatenating backends
- Model guidance documents for tools without a native model setting
"""

import json
from collections.abc import Iterable, Sequence
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined

from agentpacks.models import ResolvedModels
from agentpacks.schema import Rule
from agentpacks.targets.filesystem import HASH_MARKER, MARKDOWN_MARKER

_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def template(source: str):
    """Compile a Jinja2 template with the shared environment settings."""
    return _env.from_string(source)


SECTION_DOCUMENT = template(
    """{{ marker }}
{% if title %}

# {{ title }}
{% endif %}
{% if preamble %}

{{ preamble }}
{% endif %}
{% for section in sections %}

<!-- agentpacks:rule {{ section.source }} -->
## {{ section.heading }}

{{ section.body }}
{% endfor %}
{% if references %}

## {{ references_title }}

{% for ref in references %}
- [{{ ref.heading }}]({{ ref.path }})
{% endfor %}
{% endif %}
"""
)


def normalize_body(body: str) -> str:
    """Drop leading blank lines and trailing whitespace."""
    return body.lstrip("\r\n").rstrip()


def render_frontmatter(data: dict[str, Any]) -> str:
    """Render a `---` YAML block, or "" when there is nothing to emit."""
    clean = {k: v for k, v in data.items() if v is not None and v != [] and v != ()}
    if not clean:
        return ""
    dumped = yaml.safe_dump(
        clean,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=1000,
    )
    return f"---\n{dumped}---\n"


def markdown_document(body: str, frontmatter: dict[str, Any] | None = None) -> str:
    """Frontmatter (if any), then the generated marker, then the body."""
    parts = []
    fm = render_frontmatter(frontmatter or {})
    if fm:
        parts.append(fm)
    parts.append(MARKDOWN_MARKER + "\n")
    text = normalize_body(body)
    if text:
        parts.append("\n" + text + "\n")
    return "".join(parts)


def rule_heading(rule: Rule) -> str:
    """Section heading: the rule description, else the title-cased slug."""
    if rule.description:
        return rule.description.strip()
    return rule.slug.replace("-", " ").replace("_", " ").title()


def ordered_rules(rules: Iterable[Rule]) -> list[Rule]:
    """
    Order rules for a concatenated document.

    Root rules first, then detail rules; each group keeps merged order, which
    is pack-declaration order with ties broken alphabetically by slug.
    """
    rules = list(rules)
    return [r for r in rules if r.root] + [r for r in rules if not r.root]


def render_sections(
    rules: Sequence[Rule],
    title: str | None = None,
    preamble: str | None = None,
    references: Sequence[tuple[str, str]] = (),
    references_title: str = "Additional instructions",
) -> str:
    """
    Render rules as one document of clearly delimited sections.

    Each section is introduced by an `agentpacks:rule <pack>/<slug>` comment
    so content can be traced back to its source rule.

    Args:
        rules: Rules in final order
        title: Optional top-level heading
        preamble: Optional text between the title and the first section
        references: (heading, relative path) links appended after the sections
        references_title: Heading of the reference list
    """
    sections = [
        {
            "source": f"{rule.source_pack}/{rule.slug}",
            "heading": rule_heading(rule),
            "body": normalize_body(rule.body),
        }
        for rule in rules
    ]
    return SECTION_DOCUMENT.render(
        marker=MARKDOWN_MARKER,
        title=title,
        preamble=preamble,
        sections=sections,
        references=[{"heading": h, "path": p} for h, p in references],
        references_title=references_title,
    )


def toml_string(value: str) -> str:
    """Quote a value as a TOML basic string (JSON escapes are valid TOML)."""
    return json.dumps(value, ensure_ascii=False)


def toml_array(values: Iterable[str]) -> str:
    return "[" + ", ".join(toml_string(v) for v in values) + "]"


def hash_comment_document(lines: Iterable[str]) -> str:
    """A '#'-comment file (ignore files) headed by the generated marker."""
    return "\n".join([HASH_MARKER, *lines]) + "\n"


MODEL_GUIDANCE = template(
    """# Model Configuration
{% if active_profile %}

Active profile: `{{ active_profile }}`
{% endif %}
{% if default or small %}

{% if default %}
- Default model: `{{ default }}`
{% endif %}
{% if small %}
- Small model: `{{ small }}`
{% endif %}
{% endif %}
{% if agents %}

## Agent Models

{% for name, agent in agents %}
- {{ name }}: `{{ agent.model }}`{% if agent.temperature is not none %} (temperature {{ agent.temperature }}){% endif %}

{% endfor %}
{% endif %}
{% if profiles %}

## Profiles

{% for name, profile in profiles %}
- **{{ name }}**{% if profile.description %}: {{ profile.description }}{% endif %}
{% if profile.default %}
  - default: `{{ profile.default }}`
{% endif %}
{% if profile.small %}
  - small: `{{ profile.small }}`
{% endif %}
{% endfor %}
{% endif %}
{% if routing %}

## Routing

{% for rule in routing %}
- When {{ rule.when | dictsort | map("join", "=") | join(", ") }}, use profile `{{ rule.use }}`{% if rule.description %}: {{ rule.description }}{% endif %}

{% endfor %}
{% endif %}
"""
)


def model_guidance(resolved: ResolvedModels) -> str:
    """A markdown body describing model choices, for tools that cannot set them."""
    routing = sorted(resolved.routing, key=lambda r: -(r.priority or 0))
    return MODEL_GUIDANCE.render(
        active_profile=resolved.active_profile,
        default=resolved.default,
        small=resolved.small,
        agents=sorted(resolved.agents.items()),
        profiles=sorted(resolved.profiles.items()),
        routing=routing,
    )
