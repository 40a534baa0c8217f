"""Tests for trigger resolution against the catalog."""

import pytest

from eventsink.exceptions import BindingError, DuplicateParamError, TemplateNotFoundError
from eventsink.models.trigger import (
    CLUSTER_BINDING_KIND,
    Param,
    Trigger,
    TriggerBinding,
    TriggerSpecBinding,
    TriggerSpecTemplate,
    TriggerTemplate,
)
from eventsink.template.resource import merge_binding_params, resolve_trigger


def resolve(lister, trigger):
    return resolve_trigger(
        trigger,
        lister.get_binding(trigger.namespace),
        lister.get_cluster_binding,
        lister.get_template(trigger.namespace),
    )


def make_trigger(bindings, template=None):
    return Trigger(
        name='t',
        namespace='default',
        bindings=bindings,
        template=template or TriggerSpecTemplate(ref='build'),
    )


class TestResolveTrigger:
    def test_refs_and_inline_params(self, lister):
        resolved = resolve(lister, lister.get_trigger('default', 'on-push'))

        assert resolved.template.name == 'build'
        assert [p.name for p in resolved.binding_params] == ['sha', 'repo', 'event']

    def test_cluster_binding(self, lister):
        trigger = make_trigger([TriggerSpecBinding(ref='cluster-binding', kind=CLUSTER_BINDING_KIND)])
        resolved = resolve(lister, trigger)
        assert resolved.binding_params == [Param('cluster', 'prod')]

    def test_inline_template(self, lister):
        inline = TriggerTemplate(name='', resource_templates=['{"kind":"Inline"}'])
        trigger = make_trigger([], TriggerSpecTemplate(spec=inline))
        assert resolve(lister, trigger).template is inline

    def test_missing_binding(self, lister):
        with pytest.raises(BindingError):
            resolve(lister, lister.get_trigger('default', 'broken'))

    def test_missing_cluster_binding(self, lister):
        trigger = make_trigger([TriggerSpecBinding(ref='push-binding', kind=CLUSTER_BINDING_KIND)])
        with pytest.raises(BindingError):
            resolve(lister, trigger)

    def test_missing_template(self, lister):
        trigger = make_trigger([], TriggerSpecTemplate(ref='nope'))
        with pytest.raises(TemplateNotFoundError):
            resolve(lister, trigger)

    def test_no_template(self, lister):
        with pytest.raises(TemplateNotFoundError):
            resolve(lister, make_trigger([], TriggerSpecTemplate()))

    def test_duplicate_across_bindings(self, lister):
        trigger = make_trigger([
            TriggerSpecBinding(ref='push-binding'),
            TriggerSpecBinding(name='sha', value='override'),
        ])
        with pytest.raises(DuplicateParamError) as exc_info:
            resolve(lister, trigger)
        assert exc_info.value.name == 'sha'


class TestBindingModels:
    def test_invalid_binding_kind(self):
        with pytest.raises(BindingError):
            TriggerSpecBinding(ref='x', kind='Bogus')

    def test_inline_binding_needs_value(self):
        with pytest.raises(BindingError):
            TriggerSpecBinding(name='x')

    def test_duplicate_within_binding(self):
        with pytest.raises(BindingError):
            TriggerBinding(name='b', params=[Param('a', '1'), Param('a', '2')])

    def test_merge_keeps_order(self):
        merged = merge_binding_params([[Param('a', '1')], [Param('b', '2'), Param('c', '3')]])
        assert [p.name for p in merged] == ['a', 'b', 'c']
