"""Tests for keye.utils.export module."""

from keye.utils.export import (
    build_export,
    build_payload,
    clean_origin_headers,
    count_headers,
    count_origins,
    mask_value,
)


def _record(headers_by_origin, captured_at='2024-01-01T00:00:00+00:00', active=False):
    return {
        'headersByOrigin': headers_by_origin,
        'tabId': 7,
        'capturedAt': captured_at,
        'active': active,
    }


class TestCleanOriginHeaders:
    """Test clean_origin_headers()."""

    def test_strips_response_prefix(self):
        result = clean_origin_headers({'Authorization': 'a', 'response:Set-Cookie': 'sid=1'})
        assert result == {'Authorization': 'a', 'Set-Cookie': 'sid=1'}

    def test_request_value_wins_on_collision(self):
        result = clean_origin_headers({'X-Token': 'request', 'response:X-Token': 'response'})
        assert result == {'X-Token': 'request'}

    def test_request_value_wins_when_response_stored_first(self):
        result = clean_origin_headers(
            {
                'response:X-Auth-Token': 'response',
                'X-Auth-Token': 'request',
                'response:Set-Cookie': 's',
            }
        )
        assert result == {'X-Auth-Token': 'request', 'Set-Cookie': 's'}

    def test_payload_prefers_request_value(self):
        record = _record({'a.com': {'response:X-Auth-Token': 'resp', 'X-Auth-Token': 'req'}})
        assert build_payload('a.com', record)['origins'] == {'a.com': {'X-Auth-Token': 'req'}}


class TestBuildPayload:
    """Test build_payload()."""

    def test_groups_by_origin_and_drops_empty_origins(self):
        record = _record({'api.example.com': {'Authorization': 'Bearer t'}, 'cdn.example.com': {}})
        payload = build_payload('example.com', record)
        assert payload == {
            'tab': 'example.com',
            'capturedAt': '2024-01-01T00:00:00+00:00',
            'origins': {'api.example.com': {'Authorization': 'Bearer t'}},
        }

    def test_protected_site_carries_warning(self):
        payload = build_payload('mail.google.com', _record({'mail.google.com': {'Cookie': 'SID=1'}}))
        assert 'warning' in payload
        assert 'fingerprint' in payload['warning']


class TestBuildExport:
    """Test build_export()."""

    def test_nothing_captured(self):
        assert build_export({}) is None
        assert build_export({'example.com': _record({})}) is None

    def test_single_site_returns_payload(self):
        snapshot = {
            'example.com': _record({'example.com': {'Cookie': 'sid=1'}}),
            'empty.com': _record({}),
        }
        result = build_export(snapshot)
        assert isinstance(result, dict)
        assert result['tab'] == 'example.com'

    def test_several_sites_return_list(self):
        snapshot = {
            'a.com': _record({'a.com': {'Cookie': 'sid=1'}}),
            'b.com': _record({'api.b.com': {'Authorization': 'Bearer x'}}),
        }
        result = build_export(snapshot)
        assert [p['tab'] for p in result] == ['a.com', 'b.com']

    def test_specific_site(self):
        snapshot = {
            'a.com': _record({'a.com': {'Cookie': 'sid=1'}}),
            'b.com': _record({'api.b.com': {'Authorization': 'Bearer x'}}),
        }
        assert build_export(snapshot, 'b.com')['origins'] == {
            'api.b.com': {'Authorization': 'Bearer x'}
        }
        assert build_export(snapshot, 'missing.com') is None


class TestCountsAndMasking:
    """Test count helpers and mask_value()."""

    def test_counts(self):
        record = _record({'a.com': {'Cookie': '1', 'Authorization': '2'}, 'b.com': {'X-Token': '3'}})
        assert count_headers(record) == 3
        assert count_origins(record) == 2

    def test_mask_long_value(self):
        assert mask_value('Bearer abcdefghijkl') == 'Bear••••ijkl'

    def test_mask_short_or_missing_value(self):
        assert mask_value('short') == '••••••••'
        assert mask_value('') == '••••••••'
        assert mask_value(None) == '••••••••'
