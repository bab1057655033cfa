"""Tests for package exports."""


def test_engine_exports_available() -> None:
    """Test that the model-building API is importable from the package."""
    from recache import (
        CallbackGroup,
        Client,
        Context,
        Lazy,
        MemoryCache,
        Model,
        create_model,
        lazy,
    )

    # Just verify they're importable
    assert Client is not None
    assert Context is not None
    assert MemoryCache is not None
    assert Model is not None
    assert CallbackGroup is not None
    assert Lazy is not None
    assert create_model is not None
    assert lazy is not None


def test_error_exports_share_a_base() -> None:
    """Test that every exported error derives from RecacheError."""
    from recache import (
        GraphQLRequestError,
        MissingResolverError,
        QueryPending,
        ReadOnlyContextError,
        RecacheError,
        TransportError,
        UnknownIdentifierError,
    )

    for error in (
        GraphQLRequestError,
        MissingResolverError,
        QueryPending,
        ReadOnlyContextError,
        TransportError,
        UnknownIdentifierError,
    ):
        assert issubclass(error, RecacheError)
    assert issubclass(UnknownIdentifierError, LookupError)


def test_boundary_protocols_are_runtime_checkable() -> None:
    """Test that the reference adapters satisfy the boundary protocols."""
    from recache import DocumentCache, MemoryCache, MemoryRecordStore, RecordStore

    assert isinstance(MemoryRecordStore(), RecordStore)
    assert isinstance(MemoryCache(), DocumentCache)
