"""Tests for the JMESPath policy interceptor."""

import json

import pytest

from eventsink.interceptors import INVALID_CONTENT_TYPE_MESSAGE, DispatchContext
from eventsink.interceptors.policy import PolicyInterceptor, evaluate_overlay
from eventsink.models.interceptor import Code, InterceptorRequest, Overlay

PUSH = {
    'ref': 'refs/heads/main',
    'commits': [
        {'id': 'c1', 'author': {'name': 'alice'}},
        {'id': 'c2', 'author': {'name': 'bob'}},
    ],
}


def run(params, body=PUSH, header=None, extensions=None):
    request = InterceptorRequest(
        body=json.dumps(body) if not isinstance(body, str) else body,
        header=header or {'Content-Type': ['application/json'], 'X-GitHub-Event': ['push']},
        extensions=extensions or {},
        interceptor_params=params,
    )
    return PolicyInterceptor().process(DispatchContext(5), request)


class TestFilter:
    def test_matching_filter_continues(self):
        response = run({'filter': "body.ref == 'refs/heads/main'"})
        assert response.continue_
        assert response.extensions is None

    def test_header_filter(self):
        response = run({'filter': 'header."X-Github-Event" == \'push\''})
        assert response.continue_

    def test_extensions_visible(self):
        response = run({'filter': "extensions.team == 'platform'"}, extensions={'team': 'platform'})
        assert response.continue_

    def test_unmatched_filter(self):
        expression = "body.ref == 'refs/heads/release'"
        response = run({'filter': expression})
        assert not response.continue_
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == f'{expression} unmatched'

    def test_null_result_is_unmatched(self):
        response = run({'filter': 'body.missing'})
        assert response.status.code == Code.FAILED_PRECONDITION

    def test_non_boolean_result_aborts(self):
        response = run({'filter': 'body.commits'})
        assert response.status.code == Code.ABORTED

    def test_invalid_expression_aborts(self):
        response = run({'filter': 'body.['})
        assert response.status.code == Code.ABORTED

    def test_form_encoded_body_rejected(self):
        response = run(
            {'filter': 'true'},
            body='payload=%7B%7D',
            header={'Content-Type': ['application/x-www-form-urlencoded']},
        )
        assert response.status.code == Code.INVALID_ARGUMENT
        assert response.status.message == INVALID_CONTENT_TYPE_MESSAGE

    def test_non_json_body_rejected(self):
        response = run({}, body='not json')
        assert response.status.code == Code.INVALID_ARGUMENT

    def test_empty_body_is_empty_object(self):
        response = run({'filter': 'body.ref == `null`'}, body='')
        assert response.continue_


class TestOverlays:
    def test_bindings_collect_every_row(self):
        response = run({'overlays': [{
            'extension': 'committers',
            'query': 'body.commits[].{id: id, author: author.name}',
            'bindings': ['id', 'author'],
        }]})

        assert response.continue_
        assert response.extensions == {
            'committers': {'id': ['c1', 'c2'], 'author': ['alice', 'bob']},
        }

    def test_single_keeps_first_row(self):
        response = run({'overlays': [{
            'extension': 'head',
            'query': 'body.commits[].{id: id}',
            'bindings': ['id'],
            'single': True,
        }]})
        assert response.extensions == {'head': {'id': 'c1'}}

    def test_single_object_is_one_row(self):
        response = run({'overlays': [{
            'extension': 'branch',
            'query': '{name: body.ref}',
            'bindings': ['name'],
        }]})
        assert response.extensions == {'branch': {'name': ['refs/heads/main']}}

    def test_empty_result_produces_no_extension(self):
        response = run({'overlays': [{'extension': 'none', 'query': 'body.nothing', 'bindings': ['x']}]})
        assert response.continue_
        assert response.extensions is None

    def test_invalid_overlay_aborts(self):
        response = run({'overlays': [{'extension': 'bad', 'query': 'body.[', 'bindings': []}]})
        assert response.status.code == Code.ABORTED

    def test_malformed_overlay_params(self):
        response = run({'overlays': [{'query': 'body.ref'}]})
        assert response.status.code == Code.INVALID_ARGUMENT


@pytest.mark.parametrize('single, expected', [
    (False, ['c1', 'c2']),
    (True, 'c1'),
])
def test_overlay_without_bindings(single, expected):
    overlay = Overlay(extension='ids', query='body.commits[].id', single=single)
    assert evaluate_overlay(overlay, {'body': PUSH}) == expected
