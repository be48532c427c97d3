import pytest

from casematch.enums import CompositionPreference
from casematch.schemas import Team
from casematch.services.matching import builder as builder_module
from casematch.services.matching import engine as engine_module
from casematch.services.matching import InvariantViolation, MalformedCandidateError, check_conservation, run_matching
from casematch.services.matching.rounds import PartitionOutcome


def _assert_invariants(candidates, result):
    report = check_conservation(candidates, result.teams, result.unmatched)
    assert report['complete'], report
    for team in result.teams:
        assert len(team.members) == team.team_size
        assert all(member.declared_team_size == team.team_size for member in team.members)
        groups = {member.education_group.value for member in team.members}
        for member in team.members:
            if member.composition_preference == CompositionPreference.group_a_only:
                assert 'group_b' not in groups
            if member.composition_preference == CompositionPreference.group_b_only:
                assert 'group_a' not in groups


def _mixed_pool(make_candidate):
    levels = ['none', 'participated_1_2', 'participated_3_plus', 'finalist_winner']
    availability = ['low', 'medium', 'high']
    preferences = ['either', 'either', 'group_a_only', 'group_b_only']
    topics = [['Tech'], ['Health', 'Tech'], ['Energy'], ['Consulting', 'Health']]
    pool = []
    for i in range(37):
        preference = preferences[i % 4]
        if preference == 'group_b_only':
            group = 'group_b' if i % 3 else 'group_a'
        elif preference == 'group_a_only':
            group = 'group_a' if i % 5 else 'group_b'
        else:
            group = 'group_a' if i % 2 else 'group_b'
        pool.append(make_candidate(
            f'm{i:02d}',
            declared_team_size=(2, 3, 4)[i % 3],
            composition_preference=preference,
            education_group=group,
            experience_level=levels[i % 4],
            availability_level=availability[i % 3],
            topic_preferences=topics[i % 4],
            work_style=('structured', 'flexible', 'combination')[i % 3],
        ))
    return pool


def test_single_full_team(make_candidate):
    pool = [make_candidate(f'c{i}') for i in range(4)]

    result = run_matching(pool)

    assert len(result.teams) == 1
    assert result.teams[0].team_size == 4
    assert result.unmatched == []
    assert result.statistics.matching_efficiency == 1.0


def test_remainder_below_team_size_stays_unmatched(make_candidate):
    pool = [make_candidate(f'c{i}') for i in range(3)]

    result = run_matching(pool, max_rounds=10)

    assert result.teams == []
    assert [c.id for c in result.unmatched] == ['c0', 'c1', 'c2']
    assert result.statistics.partition_summary['either'].stop_reason == 'insufficient_pool'


def test_five_same_size_candidates_leave_one_over(make_candidate):
    pool = [make_candidate(f'c{i}') for i in range(5)]

    result = run_matching(pool)

    assert len(result.teams) == 1
    assert len(result.unmatched) == 1
    assert all(team.team_size == 4 for team in result.teams)


def test_composition_gate_blocks_mixed_group(make_candidate):
    pool = [
        make_candidate('a1', composition_preference='group_a_only', education_group='group_a'),
        make_candidate('a2', composition_preference='group_a_only', education_group='group_a'),
        make_candidate('a3', composition_preference='group_a_only', education_group='group_a'),
        make_candidate('b1', composition_preference='group_b_only', education_group='group_b'),
    ]

    result = run_matching(pool)

    assert result.teams == []
    assert [c.id for c in result.unmatched] == ['a1', 'a2', 'a3', 'b1']


def test_mixed_sizes_never_mix(make_candidate):
    pool = [make_candidate(f'two{i}', declared_team_size=2) for i in range(4)]
    pool += [make_candidate(f'four{i}', declared_team_size=4) for i in range(4)]

    result = run_matching(pool)

    sizes = sorted(team.team_size for team in result.teams)
    assert sizes == [2, 2, 4]
    assert result.unmatched == []
    assert result.statistics.team_size_distribution == {2: 2, 4: 1}


def test_no_overlap_candidate_is_still_teamed(make_candidate):
    pool = [make_candidate(f'c{i}', declared_team_size=3) for i in range(2)]
    pool.append(make_candidate(
        'loner',
        declared_team_size=3,
        skills=['Pitching'],
        roles=['Designer'],
        topic_preferences=['Space'],
        work_style='structured',
        availability_level='high',
    ))

    result = run_matching(pool)

    assert len(result.teams) == 1
    assert 'loner' in result.teams[0].member_ids


def test_invariants_hold_on_mixed_pool(make_candidate):
    pool = _mixed_pool(make_candidate)

    result = run_matching(pool)

    _assert_invariants(pool, result)
    assert result.statistics.total_candidates == len(pool)
    assert result.statistics.matched_candidates + result.statistics.unmatched_count == len(pool)
    assert sum(summary.candidates for summary in result.statistics.partition_summary.values()) == len(pool)


def test_runs_are_deterministic(make_candidate):
    pool = _mixed_pool(make_candidate)

    first = run_matching(pool)
    second = run_matching(pool)

    assert first.model_dump() == second.model_dump()


def test_input_is_not_mutated(make_candidate):
    pool = _mixed_pool(make_candidate)
    snapshot = [candidate.model_dump() for candidate in pool]
    order = [candidate.id for candidate in pool]

    run_matching(pool)

    assert [candidate.id for candidate in pool] == order
    assert [candidate.model_dump() for candidate in pool] == snapshot


def test_rerun_on_unmatched_matches_extra_rounds(make_candidate):
    pool = _mixed_pool(make_candidate)

    one_round = run_matching(pool, max_rounds=1)
    rerun = run_matching(one_round.unmatched, max_rounds=1)
    two_rounds = run_matching(pool, max_rounds=2)

    combined = {tuple(team.member_ids) for team in one_round.teams + rerun.teams}
    assert combined == {tuple(team.member_ids) for team in two_rounds.teams}


def test_round_history_shrinks_pool(make_candidate):
    pool = _mixed_pool(make_candidate)

    result = run_matching(pool)

    assert result.rounds
    for record in result.rounds:
        assert record.remaining <= record.pool_size
        if record.teams_formed:
            assert record.remaining < record.pool_size
    assert result.round_summary.total_rounds == len(result.rounds)


def test_empty_pool(make_candidate):
    result = run_matching([])

    assert result.teams == []
    assert result.unmatched == []
    assert result.statistics.matching_efficiency == 0.0
    assert result.warnings == []


def test_malformed_pool_fails_before_matching(make_candidate):
    with pytest.raises(MalformedCandidateError):
        run_matching([make_candidate('c1'), make_candidate('c1')])


def test_unknown_weight_key_is_rejected(make_candidate):
    with pytest.raises(ValueError):
        run_matching([make_candidate('c1')], weights={'charisma': 3})


def test_custom_weights_change_ranking_not_membership(make_candidate):
    pool = [make_candidate(f'c{i}', declared_team_size=2) for i in range(6)]

    baseline = run_matching(pool)
    flipped = run_matching(pool, weights={'availability': -50, 'work_style': -50})

    assert len(baseline.teams) == len(flipped.teams) == 3
    assert flipped.unmatched == []


def _broken_outcome(make_candidate):
    good = [make_candidate('g1', declared_team_size=2), make_candidate('g2', declared_team_size=2)]
    bad = [make_candidate('x1', declared_team_size=2), make_candidate('x2', declared_team_size=3)]
    teams = [
        Team(id='ok', members=tuple(good), team_size=2, compatibility_score=1.0, average_experience=0.0,
             partition=CompositionPreference.either),
        Team(id='broken', members=tuple(bad), team_size=2, compatibility_score=1.0, average_experience=0.0,
             partition=CompositionPreference.either),
    ]
    return good + bad, PartitionOutcome(partition=CompositionPreference.either, teams=teams, stop_reason='pool_empty')


def test_broken_team_is_dissolved_when_not_strict(make_candidate, monkeypatch):
    pool, outcome = _broken_outcome(make_candidate)
    monkeypatch.setattr(engine_module, 'match_partitions', lambda *args, **kwargs: [outcome])

    result = run_matching(pool, strict=False)

    assert [team.id for team in result.teams] == ['ok']
    assert [c.id for c in result.unmatched] == ['x1', 'x2']
    assert result.statistics.invariant_violations == 1
    _assert_invariants(pool, result)


def test_broken_team_raises_when_strict(make_candidate, monkeypatch):
    pool, outcome = _broken_outcome(make_candidate)
    monkeypatch.setattr(engine_module, 'match_partitions', lambda *args, **kwargs: [outcome])

    with pytest.raises(InvariantViolation):
        run_matching(pool, strict=True)


def _gate_blind_scores(monkeypatch):
    # Scorer that ignores the hard gates, so the builder selects an invalid team.
    monkeypatch.setattr(builder_module, 'score_candidate', lambda *args, **kwargs: 1.0)


def test_invalid_selection_is_recovered_when_not_strict(make_candidate, monkeypatch):
    _gate_blind_scores(monkeypatch)
    pool = [
        make_candidate('a1', declared_team_size=2, composition_preference='group_a_only', education_group='group_a'),
        make_candidate('b1', declared_team_size=2, composition_preference='group_a_only', education_group='group_b'),
    ]

    result = run_matching(pool, strict=False)

    assert result.teams == []
    assert [c.id for c in result.unmatched] == ['a1', 'b1']
    assert result.statistics.invariant_violations == 1
    assert result.rounds[0].invariant_violations == 1
    _assert_invariants(pool, result)


def test_invalid_selection_raises_when_strict(make_candidate, monkeypatch):
    _gate_blind_scores(monkeypatch)
    pool = [
        make_candidate('a1', declared_team_size=2, composition_preference='group_a_only', education_group='group_a'),
        make_candidate('b1', declared_team_size=2, composition_preference='group_a_only', education_group='group_b'),
    ]

    with pytest.raises(InvariantViolation):
        run_matching(pool, strict=True)


def test_statistics_and_warnings(make_candidate):
    pool = [make_candidate(f'c{i}', declared_team_size=2, topic_preferences=['Tech']) for i in range(5)]

    result = run_matching(pool)

    stats = result.statistics
    assert stats.teams_formed == 2
    assert stats.unmatched_count == 1
    assert stats.average_team_size == 2.0
    assert stats.matching_efficiency == pytest.approx(0.8)
    assert stats.topic_distribution == {'Tech': 2}
    assert 'No group_b candidates found' in result.warnings
