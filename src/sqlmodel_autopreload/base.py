"""
SQLModelBase and __DeclarativeMeta metaclass.

Provides a metaclass that handles:
- Automatic ``table=True`` for classes deriving from TableBaseMixin
- Convenient keyword arguments (``table_name``, ``table_args``, ``mapper_args``
  and the common mapper keys such as ``version_id_col``)
- The ``auto_preload=[...]`` class keyword, moved into ``__auto_preload__``
"""
from pydantic import ConfigDict
from sqlmodel import SQLModel
from sqlmodel.main import SQLModelMetaclass, is_table_model_class


class __DeclarativeMeta(SQLModelMetaclass):
    """
    SQLModel metaclass with class-keyword configuration:

    1.  **Auto table=True**: a class directly combining TableBaseMixin gets ``table=True``.
    2.  **Explicit dict args**: ``mapper_args={...}``, ``table_args={...}``, ``table_name='...'``.
    3.  **Convenient kwargs**: common mapper args as top-level keywords (e.g. ``version_id_col``).
    4.  **Auto preload**: ``auto_preload=['posts', ...]`` declares the always-loaded relationships.
    """

    _KNOWN_MAPPER_KEYS = {
        "polymorphic_on",
        "polymorphic_identity",
        "version_id_col",
        "eager_defaults",
    }

    def __new__(cls, name, bases, attrs, **kwargs):
        # 1. Convention over configuration: auto table=True.
        #    Subclasses of an existing table model are left alone.
        is_intended_as_table = any(
            getattr(b, '_has_table_mixin', False) and not is_table_model_class(b)
            for b in bases
        )
        if is_intended_as_table and 'table' not in kwargs:
            kwargs['table'] = True

        # 2. Auto preload declaration
        if 'auto_preload' in kwargs:
            if '__auto_preload__' in attrs:
                raise TypeError(
                    f"Class {name} declares both the auto_preload keyword and __auto_preload__"
                )
            attrs['__auto_preload__'] = kwargs.pop('auto_preload')

        # 3. Merge __mapper_args__
        collected_mapper_args = {}

        if 'mapper_args' in kwargs:
            collected_mapper_args.update(kwargs.pop('mapper_args'))

        for key in cls._KNOWN_MAPPER_KEYS:
            if key in kwargs:
                collected_mapper_args[key] = kwargs.pop(key)

        if collected_mapper_args:
            existing = attrs.get('__mapper_args__', {}).copy()
            existing.update(collected_mapper_args)
            attrs['__mapper_args__'] = existing

        if 'table_args' in kwargs:
            attrs['__table_args__'] = kwargs.pop('table_args')
        if 'table_name' in kwargs:
            attrs['__tablename__'] = kwargs.pop('table_name')

        return super().__new__(cls, name, bases, attrs, **kwargs)


class SQLModelBase(SQLModel, metaclass=__DeclarativeMeta):
    """
    Base class for all SQLModel models in sqlmodel_autopreload.

    Combine with TableBaseMixin or UUIDTableBaseMixin for table models.
    """

    model_config = ConfigDict(use_attribute_docstrings=True, validate_by_name=True, extra='forbid')
