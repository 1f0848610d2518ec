"""
Typed Records

Schema-driven record base class. A record holds the populated elements of one
registry type; choice elements are stored once under their base name as a
``ChoiceValue`` so two variants can never coexist.
"""

from typing import Any, ClassVar, Iterator
import dataclasses

from fhir_datatypes.codec.choice import (
    ChoiceValue,
    resolve_variant,
    split_choice_key,
    type_suffix,
)
from fhir_datatypes.exceptions import (
    CardinalityError,
    ChoiceConflict,
    FHIRModelError,
    RequiredFieldMissing,
    UnknownElement,
    UnknownVariant,
)
from fhir_datatypes.schema.registry import (
    ElementDefinition,
    SchemaRegistry,
    TypeDefinition,
    get_registry,
)


class Record:
    """A FHIR data type instance.

    Elements are read as attributes using their literal FHIR names
    (``period.end``, ``timing.repeat.when``); choice elements read by base
    name return the ``ChoiceValue`` and read by suffixed name return the
    payload only when that variant is the populated one::

        ext = Record("Extension", url="http://example.org/x", valueString="a")
        ext.value        # ChoiceValue(type_name="string", value="a")
        ext.valueString  # "a"
        ext.valueBoolean # None

    Names that are Python keywords are reachable with item access
    (``record["class"]``).
    """

    type_name: ClassVar[str | None] = None
    registry: ClassVar[SchemaRegistry | None] = None

    def __init__(
        self,
        type_name: str | None = None,
        *,
        registry: SchemaRegistry | None = None,
        **fields: Any,
    ):
        name = type_name or type(self).type_name
        if name is None:
            raise TypeError("Record requires a type name")

        self._init_state(name, registry or type(self).registry or get_registry())

        for key, value in fields.items():
            self._assign(key, value, replace=False)

        self.check_required()

    def _init_state(self, type_name: str, registry: SchemaRegistry) -> None:
        object.__setattr__(self, "_type_name", type_name)
        object.__setattr__(self, "_registry", registry)
        object.__setattr__(self, "_definition", registry.lookup(type_name))
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_companions", {})
        object.__setattr__(self, "_unknown", {})

    @classmethod
    def build(
        cls,
        type_name: str,
        registry: SchemaRegistry,
        values: dict[str, Any],
        companions: dict[str, Any] | None = None,
        unknown: dict[str, Any] | None = None,
    ) -> "Record":
        """Create a record from already-decoded element values.

        Used by the serializers: ``values`` is keyed by element name with
        choice elements given as ``ChoiceValue``. Cardinality is still checked.
        """
        record = cls.__new__(cls)
        record._init_state(type_name, registry)
        record._values.update({k: v for k, v in values.items() if v is not None and v != []})
        record._companions.update(companions or {})
        record._unknown.update(unknown or {})
        record.check_required()
        return record

    # ------------------------------------------------------------------
    # Schema access
    # ------------------------------------------------------------------

    @property
    def definition(self) -> TypeDefinition:
        return self._definition

    @property
    def schema(self) -> SchemaRegistry:
        return self._registry

    @property
    def fhir_type(self) -> str:
        return self._type_name

    @property
    def unknown_elements(self) -> dict[str, Any]:
        """Undeclared keys kept verbatim by lenient decoding."""
        return self._unknown

    @property
    def companions(self) -> dict[str, Any]:
        """Primitive companion elements keyed by wire key (without ``_``)."""
        return self._companions

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._read(name)
        except KeyError:
            raise AttributeError(
                f"{self._type_name} has no element '{name}'"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            raise AttributeError(f"Cannot set private attribute {name}")
        self.set(name, value)

    def __getitem__(self, name: str) -> Any:
        return self._read(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def get(self, name: str, default: Any = None) -> Any:
        """Read an element, returning ``default`` when it is unset or undeclared."""
        try:
            value = self._read(name)
        except KeyError:
            return default
        if value is None or value == []:
            return default
        return value

    def set(self, name: str, value: Any) -> None:
        """Assign an element, replacing any populated variant of a choice.

        A failed assignment leaves the record as it was.
        """
        values = dict(self._values)
        companions = dict(self._companions)
        try:
            element = self._assign(name, value, replace=True)
            if element is not None:
                self._check_element(element)
        except FHIRModelError:
            object.__setattr__(self, "_values", values)
            object.__setattr__(self, "_companions", companions)
            raise

    def choice(self, name: str) -> ChoiceValue | None:
        """Populated variant of a choice element."""
        element = self._definition.element(name)
        if element is None or not element.choice:
            raise KeyError(name)
        return self._values.get(name)

    def populated(self) -> Iterator[tuple[ElementDefinition, Any]]:
        """Populated elements in schema order."""
        for element in self._definition.elements:
            value = self._values.get(element.name)
            if value is None or value == []:
                continue
            yield element, value

    def _read(self, name: str) -> Any:
        element = self._definition.element(name)
        if element is not None:
            if element.is_repeated and not element.choice:
                return self._values.get(name, [])
            return self._values.get(name)

        resolved = self._definition.resolve_key(name)
        if resolved is not None:
            element, type_name = resolved
            current = self._values.get(element.name)
            if current is not None and current.is_type(type_name):
                return current.value
            return None

        raise KeyError(name)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def _assign(self, key: str, value: Any, replace: bool) -> ElementDefinition | None:
        if key.startswith("_"):
            self._assign_companion(key[1:], value)
            return None

        element = self._definition.element(key)
        if element is not None and element.choice:
            self._assign_choice(element, self._as_choice(element, value), replace)
            return element

        if element is not None:
            normalized = self._normalize(element, value)
            if normalized is None or normalized == []:
                self._values.pop(element.name, None)
            else:
                self._values[element.name] = normalized
            return element

        resolved = self._definition.resolve_key(key)
        if resolved is not None:
            element, type_name = resolved
            choice = None
            if value is not None:
                current = self._values.get(element.name)
                companion = current.element if current is not None and current.is_type(type_name) else None
                choice = ChoiceValue(
                    type_name,
                    self._coerce(type_name, value, element.path),
                    element=companion,
                )
            self._assign_choice(element, choice, replace, clear_type=type_name)
            return element

        for element in self._definition.choice_elements:
            suffix = split_choice_key(element.name, key)
            if suffix is not None:
                raise UnknownVariant(element.path, suffix, list(element.types))

        raise UnknownElement(f"{self._definition.path}.{key}", key)

    def _assign_choice(
        self,
        element: ElementDefinition,
        choice: ChoiceValue | None,
        replace: bool,
        clear_type: str | None = None,
    ) -> None:
        current = self._values.get(element.name)

        if choice is None:
            if current is not None and (clear_type is None or current.is_type(clear_type)):
                del self._values[element.name]
            return

        if current is not None and not replace and not current.is_type(choice.type_name):
            raise ChoiceConflict(
                element.path,
                [current.key(element.name), choice.key(element.name)],
            )

        self._values[element.name] = choice

    def _as_choice(self, element: ElementDefinition, value: Any) -> ChoiceValue | None:
        if value is None:
            return None
        if not isinstance(value, ChoiceValue):
            raise TypeError(
                f"{element.path} must be assigned a ChoiceValue "
                f"or through a suffixed name such as {element.name}{type_suffix(element.types[0])}"
            )
        if value.opaque:
            return value
        type_name = resolve_variant(element.name, element.types, value.type_name, element.path)
        return ChoiceValue(
            type_name=type_name,
            value=self._coerce(type_name, value.value, element.path),
            element=value.element,
        )

    def _assign_companion(self, key: str, value: Any) -> None:
        resolved = self._definition.resolve_key(key)
        if resolved is None:
            raise UnknownElement(f"{self._definition.path}._{key}", f"_{key}")

        element, type_name = resolved

        if isinstance(value, list):
            value = [self._coerce("Element", v, element.path) for v in value]
        else:
            value = self._coerce("Element", value, element.path)

        if element.choice:
            current = self._values.get(element.name)
            if current is not None and current.is_type(type_name):
                self._values[element.name] = dataclasses.replace(current, element=value)
            elif value is not None:
                self._assign_choice(element, ChoiceValue(type_name, None, value), replace=False)
            return

        if value is None:
            self._companions.pop(key, None)
        else:
            self._companions[key] = value

    def _normalize(self, element: ElementDefinition, value: Any) -> Any:
        if value is None:
            return None

        if element.is_repeated:
            items = list(value) if isinstance(value, (list, tuple)) else [value]
            return [self._coerce(element.type_name, item, element.path) for item in items]

        if isinstance(value, (list, tuple)):
            if len(value) > 1:
                raise CardinalityError(element.path, len(value), element.max or 1)
            if not value:
                return None
            value = value[0]

        return self._coerce(element.type_name, value, element.path)

    def _coerce(self, type_name: str, value: Any, path: str) -> Any:
        """Turn plain dict payloads of complex types into records."""
        if isinstance(value, dict) and self._registry.is_complex(type_name):
            from fhir_datatypes.serialization.json_codec import from_dict

            return from_dict(type_name, value, registry=self._registry)
        return value

    # ------------------------------------------------------------------
    # Cardinality
    # ------------------------------------------------------------------

    def check_required(self) -> None:
        """Raise if any element's cardinality is violated."""
        for element in self._definition.elements:
            self._check_element(element)

    def _check_element(self, element: ElementDefinition) -> None:
        value = self._values.get(element.name)

        if element.is_required and (value is None or value == []):
            raise RequiredFieldMissing(element.path)

        if isinstance(value, list):
            if len(value) < element.min:
                raise RequiredFieldMissing(element.path)
            if element.max is not None and len(value) > element.max:
                raise CardinalityError(element.path, len(value), element.max)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a generic JSON tree."""
        from fhir_datatypes.serialization.json_codec import to_dict

        return to_dict(self)

    def to_json(self, indent: int | None = 2) -> str:
        from fhir_datatypes.serialization.json_codec import to_json

        return to_json(self, indent=indent)

    def to_xml(self) -> str:
        from fhir_datatypes.serialization.xml_codec import to_xml

        return to_xml(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> "Record":
        from fhir_datatypes.serialization.json_codec import from_dict

        return from_dict(_class_type(cls, kwargs), data, **kwargs)

    @classmethod
    def from_json(cls, text: str, **kwargs: Any) -> "Record":
        from fhir_datatypes.serialization.json_codec import from_json

        return from_json(_class_type(cls, kwargs), text, **kwargs)

    @classmethod
    def from_xml(cls, text: str, **kwargs: Any) -> "Record":
        from fhir_datatypes.serialization.xml_codec import from_xml

        return from_xml(_class_type(cls, kwargs), text, **kwargs)

    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._type_name == other._type_name and self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = []
        for element, value in self.populated():
            if isinstance(value, ChoiceValue):
                parts.append(f"{value.key(element.name)}={value.value!r}")
            else:
                parts.append(f"{element.name}={value!r}")
        return f"{self._type_name}({', '.join(parts)})"


def _class_type(cls: type[Record], kwargs: dict[str, Any]) -> str:
    type_name = kwargs.pop("type_name", None) or cls.type_name
    if type_name is None:
        raise TypeError("type_name is required when calling on Record directly")
    if cls.registry is not None:
        kwargs.setdefault("registry", cls.registry)
    return type_name
