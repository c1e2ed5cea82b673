from __future__ import annotations

from gluesync.labels import (
    belongs_to_board,
    extract_jira_id,
    extract_jira_id_from_title,
    extract_project_key,
    format_jira_id_label,
    format_synced_title,
    has_jira_prefix,
    issue_kind,
    resolve_ticket_key,
)
from gluesync.models import Issue


def test_extract_project_key_trims_and_first_match_wins():
    assert extract_project_key(['bug', 'jira-project:  LEG ', 'jira-project: OTHER']) == ('LEG', True)


def test_extract_project_key_empty_value_is_not_found():
    assert extract_project_key(['jira-project:   ']) == ('', False)
    assert extract_project_key(['feature']) == ('', False)


def test_extract_project_key_prefix_is_case_sensitive():
    assert extract_project_key(['Jira-Project: LEG']) == ('', False)


def test_extract_jira_id_lenient_and_strict():
    assert extract_jira_id(['jira-id: LEG-12']) == ('LEG-12', True)
    assert extract_jira_id(['jira-id: leg-12']) == ('leg-12', True)
    assert extract_jira_id(['jira-id: leg-12'], strict=True) == ('', False)
    assert extract_jira_id(['jira-id: LEG-12'], strict=True) == ('LEG-12', True)


def test_title_codec():
    assert extract_jira_id_from_title('[ABC-123] foo') == ('ABC-123', True)
    assert extract_jira_id_from_title('foo') == ('', False)
    assert has_jira_prefix('[ABC-123] foo')
    assert not has_jira_prefix('[abc-123] foo')
    assert not has_jira_prefix('foo [ABC-123]')


def test_encodings_decode_to_same_key():
    key = 'LEG-42'
    title = format_synced_title(key, 'Auth feature')
    label = format_jira_id_label(key)
    assert title == '[LEG-42] Auth feature'
    assert label == 'jira-id: LEG-42'
    assert extract_jira_id_from_title(title)[0] == extract_jira_id([label])[0] == key


def test_format_synced_title_replaces_existing_prefix():
    assert format_synced_title('LEG-2', '[LEG-1] Auth') == '[LEG-2] Auth'


def test_resolve_ticket_key_prefers_label_over_title():
    issue = Issue(number=1, title='[OLD-1] Renamed by hand', labels=['jira-id: NEW-7'])
    assert resolve_ticket_key(issue) == ('NEW-7', True)
    legacy = Issue(number=2, title='[LEG-3] Legacy', labels=[])
    assert resolve_ticket_key(legacy) == ('LEG-3', True)
    assert resolve_ticket_key(Issue(number=3, title='plain')) == ('', False)


def test_board_membership_and_kind():
    by_name = Issue(number=1, title='a', labels=['leg', 'Feature'])
    by_project = Issue(number=2, title='b', labels=['jira-project: LEG', 'type: story'])
    other = Issue(number=3, title='c', labels=['jira-project: OPS'])
    assert belongs_to_board(by_name, 'LEG')
    assert belongs_to_board(by_project, 'LEG')
    assert not belongs_to_board(other, 'LEG')
    assert issue_kind(by_name) == 'feature'
    assert issue_kind(by_project) == 'story'
    assert issue_kind(other) is None
