import pytest

REPORT_TEMPLATE = """
Smart Array P410i in Slot 0 (Embedded)    (sn: 5001438011A8B720)

   array A (SAS, Unused Space: 0  MB)


      logicaldrive 1 (136.7 GB, RAID 1, {ld1})

      physicaldrive 1I:1:1 (port 1I:box 1:bay 1, SAS, 146 GB, {pd1})
      physicaldrive 1I:1:2 (port 1I:box 1:bay 2, SAS, 146 GB, {pd2})

   array B (SAS, Unused Space: 1.5 TB)


      logicaldrive 2 (558.7 GB, RAID 5, {ld2})

      physicaldrive 1I:1:3 (port 1I:box 1:bay 3, SAS, 300 GB, {pd3})
      physicaldrive 1I:1:4 (port 1I:box 1:bay 4, SAS, 300 GB, {pd4})
      physicaldrive 2I:1:5 (port 2I:box 1:bay 5, SAS, 300 GB, {pd5})

   unassigned

      physicaldrive 2I:1:6 (port 2I:box 1:bay 6, SATA, 500 GB, {spare})

   SEP (Vendor ID PMCSIERA, Model  SRCv24x6G) 380 (WWID: 5001438029C1D99F)
"""

UNASSIGNED_ONLY_REPORT = """\
Smart Array P400 in Slot 1 (RAID Mode)    (sn: PAFGK0P9VWW1R7)

   unassigned

      physicaldrive 1I:1:1 (port 1I:box 1:bay 1, SAS, 72 GB, OK)
      physicaldrive 1I:1:2 (port 1I:box 1:bay 2, SAS, 72 GB, OK)
"""


def build_report(**statuses) -> str:
    fields = dict(ld1="OK", ld2="OK", pd1="OK", pd2="OK", pd3="OK", pd4="OK", pd5="OK", spare="OK")
    fields.update(statuses)
    return REPORT_TEMPLATE.format(**fields)


@pytest.fixture
def report_factory():
    return build_report


@pytest.fixture
def healthy_report():
    return build_report()


@pytest.fixture
def unassigned_only_report():
    return UNASSIGNED_ONLY_REPORT
