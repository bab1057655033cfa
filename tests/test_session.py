"""Tests for sessions and session managers."""

from recache import Client, MemoryCache, Session, get_session_manager


class TestSessionManager:
    """Tests for the start/dispose epoch protocol."""

    def test_start_supersedes_previous_session(self, client: Client) -> None:
        """Test that starting a session deactivates the previous one."""
        manager = get_session_manager(client, "todos", {"page": 1})

        first = manager.start()
        assert first.is_active
        second = manager.start()

        assert not first.is_active
        assert second.is_active

    def test_dispose_deactivates_current_session(self, client: Client) -> None:
        """Test that dispose ends the current session."""
        manager = get_session_manager(client, "todos")
        session = manager.start()

        manager.dispose()

        assert not session.is_active
        assert manager.disposed

    def test_start_flushes_dispose_before_load(self, client: Client) -> None:
        """Dispose callbacks run before load callbacks on start."""
        calls: list[str] = []
        manager = get_session_manager(client, "todos")
        manager.on_load(lambda: calls.append("load"))
        manager.on_dispose(lambda: calls.append("dispose"))

        manager.start()
        manager.start()

        assert calls == ["dispose", "load"]

    def test_dispose_is_idempotent(self, client: Client) -> None:
        """Test that disposing twice flushes once."""
        calls: list[str] = []
        manager = get_session_manager(client, "todos")
        manager.start()
        manager.on_dispose(lambda: calls.append("dispose"))
        manager.dispose()
        manager.on_dispose(lambda: calls.append("late"))

        manager.dispose()

        assert calls == ["dispose"]

    def test_start_after_dispose_reopens(self, client: Client) -> None:
        """A disposed manager can start again."""
        manager = get_session_manager(client, "todos")
        manager.dispose()

        session = manager.start()

        assert not manager.disposed
        assert session.is_active


class TestGetSessionManager:
    """Tests for manager lookup."""

    def test_keys_compare_by_value(self, client: Client) -> None:
        """Test that equal keys share a manager."""
        first = get_session_manager(client, "todos", {"filter": {"done": True}})
        second = get_session_manager(client, "todos", {"filter": {"done": True}})
        other = get_session_manager(client, "todos", {"filter": {"done": False}})

        assert first is second
        assert first is not other

    def test_missing_key_equals_empty_key(self, client: Client) -> None:
        """None and an empty mapping are the same key."""
        assert get_session_manager(client, "todos") is get_session_manager(
            client, "todos", {}
        )

    def test_groups_are_separate(self, client: Client) -> None:
        """Test that the same key in different groups gives different managers."""
        assert get_session_manager(client, "todos") is not get_session_manager(
            client, "users"
        )

    def test_no_group_gives_fresh_manager(self, client: Client) -> None:
        """Without a group every call gets a new manager."""
        assert get_session_manager(client) is not get_session_manager(client)

    def test_clients_keep_separate_managers(self) -> None:
        """Test that managers are scoped to a client."""
        cache = MemoryCache()
        first, second = Client(cache), Client(cache)

        assert get_session_manager(first, "todos") is not get_session_manager(
            second, "todos"
        )


class TestSession:
    def test_track_deduplicates_by_identity(self, client: Client) -> None:
        """Test that a source is tracked once per session."""
        session: Session = get_session_manager(client).start()
        source = object()

        assert session.track(source)
        assert not session.track(source)
        assert session.track(object())
