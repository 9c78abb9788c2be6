from textwrap import dedent

UNIT_TEMPLATE = dedent(
    '''
    """{{ docstring }}"""

    from __future__ import annotations

    from typing import Any

    from diforge._internal.aop import bind_interceptors
    from diforge._internal.keys import load_import_path

    {% for alias, path in imports %}
    {{ alias }}: Any = load_import_path("{{ path }}")
    {% endfor %}

    is_singleton = {{ is_singleton }}


    def build(prototype: Any, singleton: Any, injection_point: Any, injector: Any, load_type: Any) -> Any:
    {{ body_block }}
    ''',
).strip()

CONCRETE_BODY_TEMPLATE = dedent(
    """
    instance = {{ constructor }}(
    {% for argument in arguments %}
        {{ argument }},
    {% endfor %}
    )
    {% if interceptor_block %}
    {{ interceptor_block }}
    {% endif %}
    return instance
    """,
).strip()

FACTORY_BODY_TEMPLATE = dedent(
    """
    return {{ factory }}(
    {% for argument in arguments %}
        {{ argument }},
    {% endfor %}
    )
    """,
).strip()

PROVIDER_BODY_TEMPLATE = dedent(
    """
    provider = {{ provider }}(
    {% for argument in arguments %}
        {{ argument }},
    {% endfor %}
    )
    return provider.get()
    """,
).strip()

INSTANCE_BODY_TEMPLATE = "return {{ value }}"

INTERCEPTOR_BINDING_TEMPLATE = dedent(
    """
    bind_interceptors(
        instance,
        {
    {% for method, interceptor_keys in bindings %}
            "{{ method }}": (
    {% for key in interceptor_keys %}
                prototype("{{ key }}"),
    {% endfor %}
            ),
    {% endfor %}
        },
    )
    """,
).strip()

PROXY_TEMPLATE = dedent(
    '''
    """Interception proxy for ``{{ target_path }}``."""

    from __future__ import annotations

    from typing import Any

    from diforge._internal.aop import MethodInvocation
    from diforge._internal.keys import load_import_path

    _Target: Any = load_import_path("{{ target_path }}")


    class {{ proxy_name }}(_Target):
    {% for method in methods %}

        def {{ method }}(self, *args: Any, **kwargs: Any) -> Any:
            return MethodInvocation(
                self,
                _Target.{{ method }},
                args,
                kwargs,
                self._diforge_bindings["{{ method }}"],
            ).proceed()
    {% endfor %}
    ''',
).strip()
