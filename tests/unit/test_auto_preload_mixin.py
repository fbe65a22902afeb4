import pytest

from sqlmodel_autopreload import (
    AutoPreloadMixin,
    InvalidArgumentKindError,
    InvalidRelationshipSpecificationError,
    ReadHooksMixin,
)

from ..utils import RecordingQuery


def preload_comments(query) -> None:
    query.preload("comments")


def run_fetch(model) -> RecordingQuery:
    query = RecordingQuery()
    model.run_before_hooks("fetch", query)
    return query


class TestDeclaration:
    def test_defaults_to_empty(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            pass

        assert Host.get_auto_preloads() == []
        assert Host.get_baseline_preloads() == []

    def test_declared_list_passes_through(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        assert Host.get_auto_preloads() == ["posts"]
        assert Host.get_baseline_preloads() == ["posts"]

    def test_wrong_entry_type_fails_class_creation(self) -> None:
        with pytest.raises(InvalidRelationshipSpecificationError) as exc_info:
            class Broken(AutoPreloadMixin, ReadHooksMixin):
                __auto_preload__ = [1]

        assert exc_info.value.model == "Broken"
        assert '"Broken"' in str(exc_info.value)
        assert exc_info.value.code == "E_WRONG_RELATIONSHIP_TYPE"

    def test_one_wrong_entry_among_valid_ones_fails(self) -> None:
        with pytest.raises(InvalidRelationshipSpecificationError):
            class Broken(AutoPreloadMixin, ReadHooksMixin):
                __auto_preload__ = ["posts", None]

    def test_bare_string_declaration_fails(self) -> None:
        with pytest.raises(InvalidRelationshipSpecificationError):
            class Broken(AutoPreloadMixin, ReadHooksMixin):
                __auto_preload__ = "posts"

    def test_boot_is_idempotent(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        Host.boot()
        Host.boot()

        assert len(Host.get_before_hooks("fetch")) == 1
        assert len(Host.get_before_hooks("find")) == 1
        assert len(Host.get_before_hooks("paginate")) == 1
        assert run_fetch(Host).calls == [("posts", False)]

    def test_subclass_boots_its_own_state(self) -> None:
        class Parent(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts", "profile"]

        class Child(Parent):
            pass

        assert Child.get_baseline_preloads() == ["posts", "profile"]
        assert len(Child.get_before_hooks("fetch")) == 1

        Child.without(["posts"])

        assert Parent.get_auto_preloads() == ["posts", "profile"]
        assert Child.get_auto_preloads() == ["profile"]

    def test_class_without_read_lifecycle_cannot_narrow(self) -> None:
        class Plain(AutoPreloadMixin):
            __auto_preload__ = ["posts"]

        with pytest.raises(TypeError):
            Plain.without(["posts"])


class TestApplication:
    @pytest.mark.parametrize("event", ["fetch", "find"])
    def test_single_relationship(self, event: str) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        query = RecordingQuery()
        Host.run_before_hooks(event, query)

        assert query.calls == [("posts", False)]
        assert query.tree() == {"posts": {}}

    def test_nested_path_expands_one_level_per_segment(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts.comments.reactions"]

        query = run_fetch(Host)

        assert query.tree() == {"posts": {"comments": {"reactions": {}}}}
        assert query.calls == [("posts", True)]
        assert query.children["posts"].calls == [("comments", True)]

    def test_callback_receives_query(self) -> None:
        received = []

        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = [received.append]

        query = run_fetch(Host)

        assert received == [query]

    def test_callback_matches_named_form(self) -> None:
        class Named(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        class Callback(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = [lambda query: query.preload("posts")]

        assert run_fetch(Named).tree() == run_fetch(Callback).tree()

    def test_declaration_order_does_not_change_result(self) -> None:
        class NamedFirst(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", preload_comments]

        class CallbackFirst(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = [preload_comments, "user"]

        assert set(run_fetch(NamedFirst).tree()) == {"user", "comments"}
        assert set(run_fetch(CallbackFirst).tree()) == {"user", "comments"}

    def test_empty_list_applies_nothing(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            pass

        assert run_fetch(Host).calls == []

    def test_paginate_targets_data_query_only(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        count_query, data_query = RecordingQuery(), RecordingQuery()
        Host.run_before_hooks("paginate", (count_query, data_query))

        assert count_query.calls == []
        assert data_query.tree() == {"posts": {}}


class TestNarrowing:
    @pytest.fixture
    def host(self) -> type:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", "comments"]

        return Host

    def test_without(self, host: type) -> None:
        assert run_fetch(host.without(["comments"])).tree() == {"user": {}}
        assert host.get_auto_preloads() == ["user", "comments"]

    def test_with_only(self, host: type) -> None:
        assert run_fetch(host.with_only(["user"])).tree() == {"user": {}}
        assert host.get_auto_preloads() == ["user", "comments"]

    def test_without_any(self, host: type) -> None:
        assert run_fetch(host.without_any()).calls == []
        assert host.get_auto_preloads() == ["user", "comments"]

    def test_mutators_return_the_class(self, host: type) -> None:
        assert host.without(["user"]) is host
        assert host.with_only(["user"]) is host
        assert host.without_any() is host

    def test_narrowing_only_affects_next_read(self, host: type) -> None:
        host.without(["comments"])
        run_fetch(host)

        assert run_fetch(host).tree() == {"user": {}, "comments": {}}

    def test_narrowing_calls_compose_until_read(self, host: type) -> None:
        host.without(["comments"]).with_only(["comments"])

        assert run_fetch(host).calls == []
        assert host.get_auto_preloads() == ["user", "comments"]

    def test_name_filters_keep_callbacks(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", preload_comments]

        assert Host.without(["user", "comments"]).get_auto_preloads() == [preload_comments]
        run_fetch(Host)
        assert Host.with_only([]).get_auto_preloads() == [preload_comments]

    def test_without_any_drops_callbacks(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = [preload_comments]

        assert run_fetch(Host.without_any()).calls == []
        assert Host.get_auto_preloads() == [preload_comments]

    def test_dotted_names_match_whole_path(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts.comments", "posts"]

        assert run_fetch(Host.without(["posts"])).tree() == {"posts": {"comments": {}}}

    @pytest.mark.parametrize("method", ["without", "with_only"])
    @pytest.mark.parametrize("names", [[5], ["user", 5], "user", None])
    def test_invalid_names_fail_without_mutation(self, host: type, method: str, names) -> None:
        host.with_only(["user"])

        with pytest.raises(InvalidArgumentKindError) as exc_info:
            getattr(host, method)(names)

        assert exc_info.value.method == method
        assert host.get_auto_preloads() == ["user"]

    def test_callables_are_accepted_as_names(self, host: type) -> None:
        assert host.without([preload_comments]).get_auto_preloads() == ["user", "comments"]


class TestRestoration:
    def test_restored_after_callback_failure(self) -> None:
        def explode(query) -> None:
            raise RuntimeError("boom")

        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = [explode, "posts"]

        Host.without(["posts"])
        with pytest.raises(RuntimeError, match="boom"):
            run_fetch(Host)

        assert Host.get_auto_preloads() == [explode, "posts"]

    @pytest.mark.parametrize("event", ["fetch", "find", "paginate"])
    def test_restored_after_every_event(self, event: str) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", "comments"]

        Host.without_any()
        payload = (RecordingQuery(), RecordingQuery()) if event == "paginate" else RecordingQuery()
        Host.run_before_hooks(event, payload)

        assert Host.get_auto_preloads() == ["user", "comments"]

    def test_declared_attribute_is_never_mutated(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", "comments"]

        Host.without(["user"])
        run_fetch(Host)
        Host.with_only(["user"])

        assert Host.__auto_preload__ == ["user", "comments"]


class TestReadHooks:
    def test_unknown_event(self) -> None:
        class Host(ReadHooksMixin):
            pass

        with pytest.raises(ValueError, match="Unknown read event"):
            Host.before("save", lambda payload: None)

    def test_hooks_run_in_registration_order(self) -> None:
        calls = []

        class Host(ReadHooksMixin):
            pass

        Host.before("find", lambda payload: calls.append(("first", payload)))
        Host.before("find", lambda payload: calls.append(("second", payload)))
        Host.run_before_hooks("find", "query")
        Host.run_before_hooks("fetch", "query")

        assert calls == [("first", "query"), ("second", "query")]

    def test_hooks_are_not_inherited(self) -> None:
        class Parent(ReadHooksMixin):
            pass

        Parent.before("fetch", lambda payload: None)

        class Child(Parent):
            pass

        assert Child.get_before_hooks("fetch") == ()
        assert len(Parent.get_before_hooks("fetch")) == 1

    def test_auto_preload_runs_alongside_other_hooks(self) -> None:
        seen = []

        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["posts"]

        Host.before("fetch", lambda query: seen.append(dict(query.children)))
        run_fetch(Host)

        assert list(seen[0]) == ["posts"]

    def test_abort_handlers_run_in_registration_order(self) -> None:
        calls = []

        class Host(ReadHooksMixin):
            pass

        Host.on_read_abort(lambda: calls.append("first"))
        Host.on_read_abort(lambda: calls.append("second"))
        Host.abort_read()

        assert calls == ["first", "second"]


class TestAbortedRead:
    def test_aborted_read_restores_declared_list(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user", "comments"]

        Host.without(["user"])
        Host.abort_read()

        assert Host.get_auto_preloads() == ["user", "comments"]
        assert run_fetch(Host).tree() == {"user": {}, "comments": {}}

    def test_abort_handler_registered_once(self) -> None:
        class Host(AutoPreloadMixin, ReadHooksMixin):
            __auto_preload__ = ["user"]

        Host.boot()

        assert len(Host.get_abort_hooks()) == 1
