from typing import Annotated, Any, NamedTuple, get_args, get_origin

_ANNOTATED_MARKER_MIN_ARGS = 2


class Component(NamedTuple):
    """Differentiate multiple bindings for the same base type.

    Attach ``Component`` metadata to ``typing.Annotated`` so diforge treats each
    annotated interface as a distinct dependency key. The component value
    becomes the qualifier part of the key.

    Examples:
        .. code-block:: python

            from typing import Annotated, TypeAlias


            class Database: ...


            ReplicaDb: TypeAlias = Annotated[Database, Component("replica")]
            PrimaryDb: TypeAlias = Annotated[Database, Component("primary")]

    """

    value: Any


def component_of(annotation: Any) -> Component | None:
    """Return the ``Component`` marker carried by an ``Annotated`` type, if any."""
    if get_origin(annotation) is not Annotated:
        return None
    args = get_args(annotation)
    if len(args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None
    for metadata in args[1:]:
        if isinstance(metadata, Component):
            return metadata
    return None


def strip_annotated(annotation: Any) -> Any:
    """Return the base type of an ``Annotated`` type, or the annotation unchanged."""
    if get_origin(annotation) is Annotated:
        return get_args(annotation)[0]
    return annotation
