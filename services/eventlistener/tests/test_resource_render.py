"""Tests for textual resource template rendering."""

import json
import re

import pytest

from eventsink.models.trigger import Param, ParamSpec, TriggerTemplate
from eventsink.template import resource
from eventsink.template.event import merge_in_default_params
from eventsink.template.resource import (
    ResolvedTrigger,
    apply_params_to_resource_template,
    apply_uid_to_resource_template,
    escape_string_value,
    new_uid,
    resolve_params,
    resolve_resources,
)


def template(*resource_templates, params=None):
    return TriggerTemplate(
        name='tmpl',
        params=params or [],
        resource_templates=[json.dumps(rt) for rt in resource_templates],
    )


class TestApplyParams:
    def test_value_in_string(self):
        rendered = apply_params_to_resource_template([Param('sha', 'abc')], '{"sha":"$(params.sha)"}')
        assert json.loads(rendered) == {'sha': 'abc'}

    def test_tt_params_alias(self):
        rendered = apply_params_to_resource_template([Param('sha', 'abc')], '{"sha":"$(tt.params.sha)"}')
        assert json.loads(rendered) == {'sha': 'abc'}

    def test_quotes_are_escaped_inside_strings(self):
        rendered = apply_params_to_resource_template(
            [Param('msg', 'he said "hi"')], '{"msg":"$(params.msg)"}'
        )
        assert json.loads(rendered) == {'msg': 'he said "hi"'}

    def test_control_characters_are_escaped(self):
        rendered = apply_params_to_resource_template(
            [Param('msg', 'line one\nline two')], '{"msg":"$(params.msg)"}'
        )
        assert json.loads(rendered) == {'msg': 'line one\nline two'}

    def test_already_escaped_value_is_not_escaped_twice(self):
        rendered = apply_params_to_resource_template(
            [Param('msg', 'he said \\"hi\\"')], '{"msg":"$(params.msg)"}'
        )
        assert json.loads(rendered) == {'msg': 'he said "hi"'}

    def test_raw_splice_outside_strings(self):
        rendered = apply_params_to_resource_template(
            [Param('count', '3'), Param('labels', '["bug","ui"]')],
            '{"count":$(params.count),"labels":$(params.labels)}',
        )
        assert json.loads(rendered) == {'count': 3, 'labels': ['bug', 'ui']}

    def test_placeholder_after_escaped_quote_is_still_in_string(self):
        rendered = apply_params_to_resource_template(
            [Param('name', 'x"y')], '{"msg":"say \\"$(params.name)\\""}'
        )
        assert json.loads(rendered) == {'msg': 'say "x"y"'}

    def test_unknown_placeholder_left_untouched(self):
        rendered = apply_params_to_resource_template([], '{"a":"$(params.missing)"}')
        assert rendered == '{"a":"$(params.missing)"}'

    def test_embedded_in_larger_string(self):
        rendered = apply_params_to_resource_template(
            [Param('repo', 'widgets')], '{"name":"build-$(params.repo)-x"}'
        )
        assert json.loads(rendered) == {'name': 'build-widgets-x'}


class TestUID:
    def test_uid_alphabet_and_length(self):
        uid = new_uid()
        assert len(uid) == 5
        assert re.fullmatch(r'[bcdfghjklmnpqrstvwxz2456789]{5}', uid)

    def test_apply_uid(self):
        assert apply_uid_to_resource_template('{"n":"a-$(uid)-$(uid)"}', 'zz9') == '{"n":"a-zz9-zz9"}'

    def test_one_uid_shared_by_all_templates(self):
        tmpl = template({'name': 'a-$(uid)'}, {'name': 'b-$(uid)', 'ref': 'a-$(uid)'})
        first, second = (json.loads(r) for r in resolve_resources(tmpl, []))
        uid = first['name'][2:]
        assert second == {'name': f'b-{uid}', 'ref': f'a-{uid}'}

    def test_new_uid_per_invocation(self, monkeypatch):
        uids = iter(['aaaaa', 'bbbbb'])
        monkeypatch.setattr(resource, 'new_uid', lambda: next(uids))
        tmpl = template({'name': 'r-$(uid)'}, {'name': 's-$(uid)'})

        assert resolve_resources(tmpl, []) == ['{"name": "r-aaaaa"}', '{"name": "s-aaaaa"}']
        assert resolve_resources(tmpl, []) == ['{"name": "r-bbbbb"}', '{"name": "s-bbbbb"}']


class TestDefaults:
    def test_merge_in_default_params(self):
        merged = merge_in_default_params(
            [Param('a', '1')],
            [ParamSpec('a', default='default'), ParamSpec('b', default='x'), ParamSpec('c')],
        )
        assert {p.name: p.value for p in merged} == {'a': '1', 'b': 'x'}

    def test_default_rendered_when_binding_missing(self):
        tmpl = template({'event': '$(params.event)'}, params=[ParamSpec('event', default='push')])

        params = resolve_params(ResolvedTrigger(template=tmpl), b'{}', {})
        resources = resolve_resources(tmpl, params)

        assert [(p.name, p.value) for p in params] == [('event', 'push')]
        assert json.loads(resources[0]) == {'event': 'push'}

    def test_binding_overrides_default(self):
        tmpl = template({'event': '$(params.event)'}, params=[ParamSpec('event', default='push')])
        resolved = ResolvedTrigger(template=tmpl, binding_params=[Param('event', '$(body.kind)')])

        params = resolve_params(resolved, b'{"kind":"tag"}', {})

        assert [(p.name, p.value) for p in params] == [('event', 'tag')]

    def test_resolution_goes_through_default_merge(self, monkeypatch):
        calls = []

        def recording_merge(params, specs):
            calls.append(([p.name for p in params], [s.name for s in specs]))
            return merge_in_default_params(params, specs)

        monkeypatch.setattr('eventsink.template.event.merge_in_default_params', recording_merge)
        tmpl = template({}, params=[ParamSpec('event', default='push')])
        resolved = ResolvedTrigger(template=tmpl, binding_params=[Param('sha', '$(body.sha)')])

        resolve_params(resolved, b'{"sha":"abc"}', {})

        assert calls == [(['sha'], ['event'])]


def test_body_values_rendered():
    tmpl = template({'spec': {'msg': '$(params.msg)', 'n': '$(params.n)'}})
    resolved = ResolvedTrigger(
        template=tmpl,
        binding_params=[Param('msg', '$(body.msg)'), Param('n', '$(body.n)')],
    )
    body = json.dumps({'msg': 'he said "hi"', 'n': 7})

    resources = resolve_resources(tmpl, resolve_params(resolved, body, {}))

    assert json.loads(resources[0]) == {'spec': {'msg': 'he said "hi"', 'n': '7'}}


@pytest.mark.parametrize('value, expected', [
    ('plain', 'plain'),
    ('he said "hi"', 'he said \\"hi\\"'),
    ('already \\"escaped\\"', 'already \\"escaped\\"'),
    ('back\\slash', 'back\\\\slash'),
])
def test_escape_string_value(value, expected):
    assert escape_string_value(value) == expected
