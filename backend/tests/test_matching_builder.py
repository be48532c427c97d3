import pytest

from casematch.enums import CompositionPreference
from casematch.services.matching import builder as builder_module
from casematch.services.matching.builder import build_teams_for_bucket, create_team
from casematch.services.matching.validation import InvariantViolation


def test_create_team_derives_aggregates(make_candidate):
    members = [
        make_candidate('c1', declared_team_size=3, experience_level='none', topic_preferences=['Tech', 'Health']),
        make_candidate('c2', declared_team_size=3, experience_level='finalist_winner', topic_preferences=['Tech', 'Health']),
        make_candidate('c3', declared_team_size=3, experience_level='participated_1_2', topic_preferences=['Tech', 'Energy']),
    ]

    team = create_team(members, 3, team_id='t-1', partition=CompositionPreference.either, round_index=2)

    assert team.id == 't-1'
    assert team.member_ids == ['c1', 'c2', 'c3']
    assert team.team_size == 3
    assert team.common_topics == ('Tech', 'Health')
    assert team.average_experience == pytest.approx((0 + 3 + 1) / 3)
    assert team.preferred_team_size_match == pytest.approx(100.0)
    assert team.round_index == 2
    assert team.partition == CompositionPreference.either


def test_create_team_score_is_mean_of_pairs(make_candidate):
    members = [make_candidate('c1', declared_team_size=2), make_candidate('c2', declared_team_size=2)]

    team = create_team(members, 2, team_id='t-1')

    assert team.compatibility_score == pytest.approx(45.0)


def test_create_team_rejects_size_mismatch(make_candidate):
    members = [make_candidate('c1', declared_team_size=2), make_candidate('c2', declared_team_size=3)]

    with pytest.raises(InvariantViolation):
        create_team(members, 2, team_id='t-1')


def test_create_team_rejects_composition_breach(make_candidate):
    members = [
        make_candidate('c1', declared_team_size=2, composition_preference='group_b_only', education_group='group_b'),
        make_candidate('c2', declared_team_size=2, education_group='group_a'),
    ]

    with pytest.raises(InvariantViolation):
        create_team(members, 2, team_id='t-1')


def test_bucket_remainder_is_left_over_in_bucket_order(make_candidate):
    bucket = [make_candidate(f'c{i}', declared_team_size=2) for i in range(1, 6)]

    teams, leftovers = build_teams_for_bucket(bucket, 2, id_prefix='either-r1-s2')

    assert len(teams) == 2
    assert [team.id for team in teams] == ['either-r1-s2-1', 'either-r1-s2-2']
    assert all(len(team.members) == 2 for team in teams)
    assert len(leftovers) == 1
    placed = {cid for team in teams for cid in team.member_ids}
    assert placed | {leftovers[0].id} == {c.id for c in bucket}


def test_anchor_takes_best_scoring_partner(make_candidate):
    anchor = make_candidate('anchor', declared_team_size=2, topic_preferences=['Tech'])
    stranger = make_candidate('stranger', declared_team_size=2, topic_preferences=['Health'])
    ally = make_candidate('ally', declared_team_size=2, topic_preferences=['Tech'])

    teams, leftovers = build_teams_for_bucket([anchor, stranger, ally], 2)

    assert teams[0].member_ids == ['anchor', 'ally']
    assert [c.id for c in leftovers] == ['stranger']


def test_ties_go_to_earliest_candidate(make_candidate):
    bucket = [make_candidate(f'c{i}', declared_team_size=2) for i in range(1, 4)]

    teams, leftovers = build_teams_for_bucket(bucket, 2)

    assert teams[0].member_ids == ['c1', 'c2']
    assert [c.id for c in leftovers] == ['c3']


def test_failed_anchor_is_set_aside(make_candidate):
    # b0 bars group_b teammates but is group_b itself, so nobody fits with it.
    blocked = make_candidate('b0', declared_team_size=2, composition_preference='group_a_only', education_group='group_b')
    first = make_candidate('b1', declared_team_size=2, education_group='group_b')
    second = make_candidate('b2', declared_team_size=2, education_group='group_b')

    teams, leftovers = build_teams_for_bucket([blocked, first, second], 2)

    assert [team.member_ids for team in teams] == [['b1', 'b2']]
    assert [c.id for c in leftovers] == ['b0']


def test_bucket_is_not_modified(make_candidate):
    bucket = [make_candidate(f'c{i}', declared_team_size=3) for i in range(1, 8)]
    snapshot = list(bucket)

    build_teams_for_bucket(bucket, 3)

    assert bucket == snapshot


def test_undersized_bucket_forms_nothing(make_candidate):
    bucket = [make_candidate(f'c{i}') for i in range(1, 4)]

    teams, leftovers = build_teams_for_bucket(bucket, 4)

    assert teams == []
    assert leftovers == bucket


def test_invalid_selection_is_set_aside_and_recorded(make_candidate, monkeypatch, caplog):
    # Scorer that ignores the hard gates, so the first anchor picks an incompatible partner.
    monkeypatch.setattr(builder_module, 'score_candidate', lambda *args, **kwargs: 1.0)
    bucket = [
        make_candidate('a1', declared_team_size=2, composition_preference='group_a_only', education_group='group_a'),
        make_candidate('b1', declared_team_size=2, education_group='group_b'),
        make_candidate('a2', declared_team_size=2, education_group='group_a'),
        make_candidate('a3', declared_team_size=2, education_group='group_a'),
    ]
    violations = []

    with caplog.at_level('ERROR'):
        teams, leftovers = build_teams_for_bucket(bucket, 2, strict=False, violations=violations)

    assert [team.member_ids for team in teams] == [['a2', 'a3']]
    assert [c.id for c in leftovers] == ['a1', 'b1']
    assert len(violations) == 1 and 'composition gate' in violations[0]
    assert 'matching.invariant_violation' in caplog.text


def test_invalid_selection_raises_in_strict_mode(make_candidate, monkeypatch):
    monkeypatch.setattr(builder_module, 'score_candidate', lambda *args, **kwargs: 1.0)
    bucket = [
        make_candidate('a1', declared_team_size=2, composition_preference='group_a_only', education_group='group_a'),
        make_candidate('b1', declared_team_size=2, education_group='group_b'),
    ]

    with pytest.raises(InvariantViolation):
        build_teams_for_bucket(bucket, 2, strict=True)
