"""
Session report text - the plain-text summary coordinators paste into chat.
"""

from datetime import date
from typing import List

from batchdesk.models.batch import Batch
from batchdesk.models.session_report import SessionReport


def split_attendance(batch: Batch, present_ids: List[str], another_session_ids: List[str]):
    """
    Normalize attendance lists against the roster.

    Unknown ids are dropped, a student marked both present and in another
    session counts as in another session, and everyone else is absent.
    All three lists come back in roster order.
    """
    present, another = set(present_ids), set(another_session_ids)
    present_out, another_out, absent_out = [], [], []
    for student in batch.students:
        if student.id in another:
            another_out.append(student.id)
        elif student.id in present:
            present_out.append(student.id)
        else:
            absent_out.append(student.id)
    return present_out, another_out, absent_out


def _numbered(names: List[str]) -> List[str]:
    return ["{}.\t{}".format(i, name) for i, name in enumerate(names, 1)]


def build_report_text(batch: Batch, report: SessionReport) -> str:
    names = {s.id: s.name for s in batch.students}
    present = [names[i] for i in report.present_ids if i in names]
    another = [names[i] for i in report.another_session_ids if i in names]
    absent = [names[i] for i in report.absentee_ids if i in names]
    trainers = " , ".join(p.name for p in batch.trainers)
    report_date = date.fromisoformat(report.date_iso).strftime("%d/%m/%Y")

    lines = [
        "Communication Session Report",
        "-------------------------------------",
        "Batch: {}".format(batch.label),
        "Date: {}".format(report_date),
        "--------------------------------------------",
        "Trainers:- {}.".format(trainers),
        "",
        "Coordinators :",
    ]
    lines.extend(_numbered([p.name for p in batch.coordinators]))
    lines.append(" ---------------------------------")
    if report.tldv_url:
        lines.append("Tldv link: {}".format(report.tldv_url))
    meet_url = report.meet_url or batch.default_meet_url
    if meet_url:
        lines.append("Session Link: {}".format(meet_url))
    lines.extend(["", " Report:", "", report.activity_title])
    if report.activity_description:
        lines.extend(["", report.activity_description])

    lines.extend(["", "Present :({})".format(len(present)), "---------------------------"])
    lines.extend(_numbered(present))
    if another:
        lines.extend(["", "Attending Another Session ({})".format(len(another)),
                      "---------------------------"])
        lines.extend(_numbered(another))
    lines.extend(["", "", "Absentees ({})".format(len(absent)), "-------------------"])
    lines.extend(_numbered(absent))
    lines.extend(["", "-------------------------------", "reported by : {}".format(report.reported_by)])
    return "\n".join(lines)
