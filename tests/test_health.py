import pytest

from check_hpacucli_raid import (
    STATE_CRITICAL,
    STATE_OK,
    STATE_WARNING,
    Array,
    Drive,
    RaidChecker,
    drive_state,
    evaluate_health,
    parse_report,
    unassigned_array,
)


def test_healthy_report(healthy_report):
    report = evaluate_health(parse_report(healthy_report))
    assert report.state == STATE_OK
    assert report.deviations == []
    assert report.controllers == 1
    assert report.arrays == 2
    assert report.logical_drives == 2
    assert report.physical_drives == 6


def test_unassigned_only_report_is_ok(unassigned_only_report):
    checker = RaidChecker(parse_report(unassigned_only_report))
    assert checker.report.state == STATE_OK
    assert checker.diagnostics() == []


def test_failed_assigned_drive_is_critical(report_factory):
    checker = RaidChecker(parse_report(report_factory(pd2="Failed")))
    assert checker.report.state == STATE_CRITICAL
    assert checker.diagnostics() == [
        "controller 'Smart Array P410i in slot 0', array 'A (SAS)': "
        "drive 'physical 1I:1:2 (SAS, 146GB)' status is Failed"
    ]


def test_predictive_failure_is_warning(report_factory):
    report = evaluate_health(parse_report(report_factory(pd4="Predictive Failure")))
    assert report.state == STATE_WARNING
    assert len(report.deviations) == 1
    assert report.deviations[0].array.id == "B"


def test_unassigned_deviation_is_warning(report_factory):
    report = evaluate_health(parse_report(report_factory(spare="Failed")))
    assert report.state == STATE_WARNING
    assert report.deviations[0].array.describe() == "U (unassigned)"


@pytest.mark.parametrize('statuses', [
    dict(pd1="Failed", spare="Failed"),
    dict(pd5="Failed", spare="Failed"),
    dict(ld1="Failed", pd3="Predictive Failure"),
    dict(ld2="Failed", pd1="Predictive Failure"),
])
def test_worst_state_wins_regardless_of_order(report_factory, statuses):
    report = evaluate_health(parse_report(report_factory(**statuses)))
    assert report.state == STATE_CRITICAL
    assert len(report.deviations) == 2


def test_every_deviation_is_reported(report_factory):
    text = report_factory(ld2="Interim Recovery Mode", pd3="Failed", pd4="Predictive Failure",
                          spare="Failed")
    checker = RaidChecker(parse_report(text))
    assert checker.report.state == STATE_CRITICAL
    assert [d.state for d in checker.report.deviations] == [
        STATE_WARNING, STATE_CRITICAL, STATE_CRITICAL, STATE_WARNING]
    lines = checker.diagnostics()
    assert len(lines) == 4
    assert lines[0].startswith("controller 'Smart Array P410i in slot 0', array 'U (unassigned)'")
    assert lines[1] == ("controller 'Smart Array P410i in slot 0', array 'B (SAS)': "
                        "drive 'logical 2 (RAID 5, 559GB)' status is Interim Recovery Mode")


@pytest.mark.parametrize('status, assigned, expected', [
    ("OK", True, STATE_OK),
    ("OK", False, STATE_OK),
    ("Predictive Failure", True, STATE_WARNING),
    ("Predictive Failure", False, STATE_WARNING),
    ("Failed", False, STATE_WARNING),
    ("Failed", True, STATE_CRITICAL),
    ("ok", True, STATE_CRITICAL),
    ("OK ", True, STATE_CRITICAL),
    ("Rebuilding", True, STATE_CRITICAL),
])
def test_drive_state(status, assigned, expected):
    array = Array(id="A", type="SAS") if assigned else unassigned_array()
    drive = Drive(id="1I:1:1", size=146_000_000_000, status=status, physical=True, type="SAS")
    assert drive_state(array, drive) == expected


def test_evaluation_does_not_modify_forest(report_factory):
    controllers = parse_report(report_factory(pd1="Failed"))
    before = parse_report(report_factory(pd1="Failed"))
    evaluate_health(controllers)
    assert controllers == before


def test_no_controllers_is_ok():
    report = evaluate_health([])
    assert report.state == STATE_OK
    assert report.controllers == 0
