"""Tests for Store — generated operations, dispatch routing and notification."""

import logging

import pytest

from fluxstore import (
    Action,
    DefinitionRegistry,
    Dispatcher,
    RoutingError,
    SchemaCollisionError,
    Store,
    StoreConfig,
)


def make_store(definition=None, **options):
    dispatcher = Dispatcher()
    config = {"definition": definition if definition is not None else {"user": {}}}
    config.update(options)
    return Store(config, dispatcher=dispatcher), dispatcher


class TestConstruction:
    def test_everything_absent_initially(self):
        store, _ = make_store({"user": {}, "order": {}})
        assert store.getUser() is None
        assert store.getOrder() is None
        assert store.get_status("user") is None
        assert store.getStatus("order") is None
        assert store.getErrorUser() is None

    def test_entity_names(self):
        store, _ = make_store({"user": {}, "order": {}})
        assert store.entity_names == ("user", "order")

    def test_registers_with_dispatcher(self):
        store, _ = make_store()
        assert store.dispatch_token is not None

    def test_collision_fails_fast(self):
        with pytest.raises(SchemaCollisionError):
            make_store({"user": {}, "User": {}})

    def test_entity_shadowing_store_method_fails(self):
        with pytest.raises(SchemaCollisionError):
            make_store({"status": {}})

    def test_definition_from_registry(self):
        registry = DefinitionRegistry()
        registry.register("account", {"user": {}})
        store = Store(
            {"definition_path": "account", "custom_definition": {"profile": {}}},
            dispatcher=Dispatcher(),
            definitions=registry,
        )
        assert set(store.entity_names) == {"user", "profile"}

    def test_explicit_definition_wins(self):
        store = Store(
            StoreConfig(definition={"user": {}}, definition_path="missing"),
            dispatcher=Dispatcher(),
            definitions=DefinitionRegistry(),
        )
        assert store.entity_names == ("user",)

    def test_unknown_option_raises(self):
        with pytest.raises(TypeError):
            Store({"definitions": {}}, dispatcher=Dispatcher())

    def test_unknown_attribute(self):
        store, _ = make_store()
        with pytest.raises(AttributeError):
            store.getGhost

    def test_dir_lists_generated_identifiers(self):
        store, _ = make_store()
        assert "addUserChangeListener" in dir(store)


class TestDirectOperations:
    def test_update_and_get(self):
        store, _ = make_store()
        store.updateUser({"id": 1, "name": "Ann"}, "success")
        assert store.getUser() == {"id": 1, "name": "Ann"}
        assert store.get_status("user") == "success"

    def test_update_outside_dispatch_notifies_immediately(self):
        store, _ = make_store()
        events = []
        store.addUserChangeListener(events.append)
        store.updateUser({"id": 1}, "success")
        assert events == [{"property": "user", "status": "success"}]

    def test_error_round_trip(self):
        store, _ = make_store()
        store.updateErrorUser(["a", "b"])
        assert store.getErrorUser() == ["a", "b"]
        store.updateErrorUser({"k": "v"})
        assert store.getErrorUser() == {"k": "v"}

    def test_error_listener_gets_no_payload(self):
        store, _ = make_store()
        calls = []
        store.addUserErrorListener(lambda: calls.append("error"))
        store.updateErrorUser({"k": "v"})
        assert calls == ["error"]

    def test_remove_listeners(self):
        store, _ = make_store()
        events = []
        store.addUserChangeListener(events.append)
        store.removeUserChangeListener(events.append)
        store.updateUser({"id": 1}, None)
        assert events == []

    def test_operations_bundle_and_invoke(self):
        store, _ = make_store()
        store.invoke("user", "update", {"id": 2}, "done")
        assert store.operations("user").get() == {"id": 2}
        assert store.invoke("user", "get") == {"id": 2}

    def test_operations_unknown_entity(self):
        store, _ = make_store()
        with pytest.raises(KeyError):
            store.operations("ghost")

    def test_entities_are_independent(self):
        store, _ = make_store({"user": {}, "order": {}})
        store.updateOrder([1, 2], "loaded")
        store.updateUser({"id": 1}, "success")
        assert store.getOrder() == [1, 2]
        assert store.get_status("order") == "loaded"


class TestBatch:
    def test_notifications_wait_for_batch_exit(self):
        store, _ = make_store({"user": {}, "order": {}})
        events = []
        store.addUserChangeListener(events.append)
        store.addOrderChangeListener(events.append)
        with store.batch():
            store.updateUser({"id": 1}, "a")
            store.updateOrder({"id": 2}, "b")
            assert events == []
            assert len(store.pending_notifications) == 2
        assert [e["property"] for e in events] == ["user", "order"]

    def test_nested_batches_flush_once(self):
        store, _ = make_store()
        events = []
        store.addUserChangeListener(events.append)
        with store.batch():
            with store.batch():
                store.updateUser({"id": 1}, "a")
            assert events == []
        assert len(events) == 1

    def test_flush_delivers_early(self):
        store, _ = make_store()
        events = []
        store.addUserChangeListener(events.append)
        with store.batch():
            store.updateUser({"id": 1}, "a")
            store.flush()
            assert len(events) == 1
        assert len(events) == 1

    def test_dispatch_inside_batch_keeps_earlier_notifications(self):
        store, dispatcher = make_store()
        events = []
        store.addUserChangeListener(events.append)
        with store.batch():
            store.updateUser({"id": 1}, "direct")
            dispatcher.dispatch(Action("update", data={"user": {"id": 2}}, status={"user": "dispatched"}))
            assert events == []
        assert [e["status"] for e in events] == ["direct", "dispatched"]


class TestDispatch:
    def test_update_scenario(self):
        store, dispatcher = make_store()
        events = []
        store.addUserChangeListener(events.append)
        dispatcher.dispatch(
            {"type": "update", "data": {"user": {"id": 1, "name": "Ann"}}, "status": {"user": "success"}}
        )
        assert store.getUser() == {"id": 1, "name": "Ann"}
        assert store.get_status("user") == "success"
        assert events == [{"property": "user", "status": "success"}]

    def test_unknown_entity_is_ignored(self, caplog):
        store, dispatcher = make_store()
        events = []
        store.add_listener("ghost:change", events.append)
        store.addUserChangeListener(events.append)
        with caplog.at_level(logging.DEBUG, logger="fluxstore.store"):
            dispatcher.dispatch(Action("update", data={"ghost": {"x": 1}}))
        assert events == []
        assert store.getUser() is None
        assert "'ghost'" in caplog.text

    def test_unknown_entity_does_not_block_others(self):
        store, dispatcher = make_store()
        dispatcher.dispatch(Action("update", data={"ghost": 1, "user": {"id": 1}}, status={"user": "ok"}))
        assert store.getUser() == {"id": 1}

    def test_missing_status_is_none(self):
        store, dispatcher = make_store()
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}))
        assert store.get_status("user") is None

    def test_update_error_action(self):
        store, dispatcher = make_store()
        calls = []
        store.addUserErrorListener(lambda: calls.append("error"))
        dispatcher.dispatch(Action("updateError", data={"user": {"name": "required"}}))
        assert store.getErrorUser() == {"name": "required"}
        assert calls == ["error"]

    def test_listeners_see_every_entity_updated(self):
        store, dispatcher = make_store({"user": {}, "order": {}})
        seen = []
        store.addUserChangeListener(lambda e: seen.append((store.getUser(), store.getOrder())))
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}, "order": {"id": 2}}))
        assert seen == [({"id": 1}, {"id": 2})]

    def test_one_notification_per_entity_per_cycle(self):
        store, dispatcher = make_store()
        events = []
        store.addUserChangeListener(events.append)
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}, status={"user": "a"}))
        dispatcher.dispatch(Action("update", data={"user": {"id": 2}}, status={"user": "b"}))
        assert events == [
            {"property": "user", "status": "a"},
            {"property": "user", "status": "b"},
        ]

    def test_notifications_keep_enqueue_order(self):
        store, dispatcher = make_store({"user": {}, "order": {}})
        order = []
        store.add_listener("user:change", lambda e: order.append("user"))
        store.add_listener("order:change", lambda e: order.append("order"))
        dispatcher.dispatch(Action("update", data={"order": 1, "user": 2}))
        assert order == ["order", "user"]

    def test_unroutable_type_raises(self):
        store, dispatcher = make_store()
        events = []
        store.addUserChangeListener(events.append)
        with pytest.raises(RoutingError) as info:
            dispatcher.dispatch(Action("delete", data={"user": {"id": 1}}))
        assert info.value.entity == "user"
        assert info.value.action_type == "delete"
        assert events == []

    def test_read_operation_type_is_not_routable(self):
        store, dispatcher = make_store()
        with pytest.raises(RoutingError):
            dispatcher.dispatch(Action("get", data={"user": 1}))

    def test_routing_error_discards_cycle_notifications(self):
        store, dispatcher = make_store({"user": {}, "order": {}})
        events = []
        store.addUserChangeListener(events.append)
        store.custom_handler["user"] = {"bogus": lambda s, data, status: s.updateUser(data, status)}
        with pytest.raises(RoutingError):
            dispatcher.dispatch(Action("bogus", data={"user": {"id": 1}, "order": {"x": 1}}))
        assert store.getUser() == {"id": 1}
        assert events == []
        assert store.pending_notifications == []

    def test_conversion_error_skips_only_that_entity(self, caplog):
        store, dispatcher = make_store({"user": {}, "order": {}})
        with caplog.at_level(logging.WARNING, logger="fluxstore.store"):
            dispatcher.dispatch(Action("updateError", data={"user": "not a mapping", "order": ["bad"]}))
        assert store.getErrorUser() is None
        assert store.getErrorOrder() == ["bad"]
        assert "Could not convert" in caplog.text

    def test_failing_listener_does_not_starve_others(self, caplog):
        store, dispatcher = make_store({"user": {}, "order": {}})
        events = []

        def bad(event):
            raise RuntimeError("boom")

        store.addUserChangeListener(bad)
        store.addOrderChangeListener(events.append)
        with caplog.at_level(logging.ERROR, logger="fluxstore.channel"):
            dispatcher.dispatch(Action("update", data={"user": 1, "order": 2}))
        assert events == [{"property": "order", "status": None}]
        assert "boom" in caplog.text


class TestCustomHandlers:
    def test_custom_handler_preempts_generated_update(self):
        calls = []
        store, dispatcher = make_store(
            custom_handler={"user": {"update": lambda s, data, status: calls.append((s, data, status))}}
        )
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}, status={"user": "ok"}))
        assert calls == [(store, {"id": 1}, "ok")]
        assert store.getUser() is None

    def test_configured_handler_reaches_its_store(self):
        def merge(store, data, status):
            store.updateUser(data, "merged")

        store, dispatcher = make_store(custom_handler={"user": {"merge": merge}})
        events = []
        store.addUserChangeListener(events.append)
        dispatcher.dispatch(Action("merge", data={"user": {"id": 1}}))
        assert store.get_status("user") == "merged"
        assert events == [{"property": "user", "status": "merged"}]

    def test_custom_handler_only_for_its_type(self):
        calls = []
        store, dispatcher = make_store(custom_handler={"user": {"merge": lambda store, d, s: calls.append(d)}})
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}))
        assert calls == []
        assert store.getUser() == {"id": 1}


class TestOverride:
    def test_override_function_preempts_routing(self):
        store, dispatcher = make_store()
        seen = []
        store.global_custom_handler = lambda s, action: seen.append((s, action.type))
        dispatcher.dispatch(Action("bogus", data={"user": {"id": 1}, "ghost": 1}))
        assert seen == [(store, "bogus")]
        assert store.getUser() is None

    def test_override_object_with_handle(self):
        store, dispatcher = make_store()

        class Reset:
            def __init__(self):
                self.actions = []

            def handle(self, action):
                self.actions.append(action)
                store.updateUser({"reset": True}, "reset")

        override = Reset()
        store.global_custom_handler = override
        events = []
        store.addUserChangeListener(events.append)
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}))
        assert store.global_custom_handler is override
        assert store.getUser() == {"reset": True}
        assert events == [{"property": "user", "status": "reset"}]

    def test_clearing_override_restores_routing(self):
        store, dispatcher = make_store()
        store.global_custom_handler = lambda s, action: None
        store.global_custom_handler = None
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}))
        assert store.getUser() == {"id": 1}


class TestDispose:
    def test_dispose_unregisters_and_drops_listeners(self):
        store, dispatcher = make_store()
        events = []
        store.addUserChangeListener(events.append)
        store.dispose()
        dispatcher.dispatch(Action("update", data={"user": {"id": 1}}))
        assert store.getUser() is None
        assert store.listener_count("user:change") == 0
        assert store.dispatch_token is None

    def test_dispose_twice(self):
        store, _ = make_store()
        store.dispose()
        store.dispose()  # should not raise

    def test_two_stores_keep_separate_queues(self):
        dispatcher = Dispatcher()
        a = Store({"definition": {"user": {}}}, dispatcher=dispatcher)
        b = Store({"definition": {"user": {}}}, dispatcher=dispatcher)
        events_a, events_b = [], []
        a.addUserChangeListener(events_a.append)
        b.addUserChangeListener(events_b.append)
        dispatcher.dispatch(Action("update", data={"user": 1}, status={"user": "ok"}))
        assert len(events_a) == 1
        assert len(events_b) == 1
        assert a.getUser() == b.getUser() == 1


class TestAcrossStores:
    def test_listener_sees_stores_registered_later(self):
        dispatcher = Dispatcher()
        a = Store({"definition": {"user": {}}}, dispatcher=dispatcher)
        b = Store({"definition": {"user": {}}}, dispatcher=dispatcher)
        seen = []
        a.addUserChangeListener(lambda event: seen.append(b.getUser()))
        dispatcher.dispatch(Action("update", data={"user": 1}))
        assert seen == [1]

    def test_listener_can_dispatch_follow_up_action(self):
        dispatcher = Dispatcher()
        store = Store({"definition": {"user": {}, "log": {}}}, dispatcher=dispatcher)
        store.addUserChangeListener(
            lambda event: dispatcher.dispatch(Action("update", data={"log": "seen"}))
        )
        dispatcher.dispatch(Action("update", data={"user": 1}))
        assert store.getLog() == "seen"
        assert not dispatcher.is_dispatching
