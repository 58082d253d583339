"""HTML bodies for transactional mail. Every interpolated value is escaped."""
from __future__ import annotations

from html import escape
from typing import Iterable

from app.schemas.alerts import RiskAlertEvent

RISK_COLORS = {
    "critical": "#DC2626",
    "high": "#F59E0B",
    "medium": "#3B82F6",
    "low": "#10B981",
}
RISK_BACKGROUNDS = {
    "critical": "#fef2f2",
    "high": "#fff7ed",
}
RISK_LABELS = {
    "critical": "🚨 CRITICAL",
    "high": "⚠️ HIGH RISK",
    "medium": "⚡ MEDIUM RISK",
    "low": "✅ LOW RISK",
}
ALERT_TITLES = {
    "high-risk": "High Migration Risk Area Detected",
    "low-supply": "Low Employment Supply Alert",
    "stats-change": "Significant Statistics Change",
}
URGENT_ACTIONS = (
    "Immediately notify local authorities and employment cell",
    "Activate MGNREGA work creation in affected blocks",
    "Reach out to local MSMEs and employers for hiring drives",
    "Enroll vulnerable households in Karma Sathi and social security schemes",
)
MONITOR_ACTIONS = (
    "Monitor job postings in the area over the next weeks",
    "Encourage employers in neighbouring blocks to post openings",
)
BULK_SUMMARY_LIMIT = 150

_BRAND = "#1E40AF"


def _page(body: str, *, accent: str = _BRAND) -> str:
    return (
        '<!DOCTYPE html><html><body style="font-family:sans-serif;background:#f6f9fc;padding:20px;margin:0">'
        '<div style="max-width:600px;margin:0 auto;background:#ffffff;border-radius:8px;overflow:hidden;'
        f'border-top:6px solid {accent}">'
        f'<div style="padding:24px">{body}</div>'
        '<div style="padding:16px 24px;background:#f8fafc;color:#94a3b8;font-size:12px">'
        "SignalX · West Bengal Livelihood Platform"
        "</div></div></body></html>"
    )


def _button(href: str, label: str) -> str:
    return (
        f'<p style="text-align:center;margin:28px 0 8px"><a href="{escape(href, quote=True)}" '
        f'style="background:{_BRAND};color:#ffffff;padding:12px 24px;border-radius:6px;'
        f'text-decoration:none;font-weight:bold">{escape(label)}</a></p>'
    )


def _paragraph(text: str, *, style: str = "margin:8px 0;color:#334155;font-size:15px") -> str:
    return f'<p style="{style}">{escape(text)}</p>'


def _detail(label: str, value: str) -> str:
    return f'<p style="margin:4px 0;color:#475569;font-size:14px"><strong>{escape(label)}:</strong> {escape(value)}</p>'


def _ratio_label(supply: int, demand: int) -> str:
    if supply <= 0 or demand <= 0:
        return "0%"
    return f"{supply / demand * 100:.1f}%"


def render_admin_alert(event: RiskAlertEvent, *, dashboard_url: str) -> str:
    color = RISK_COLORS.get(event.risk_level, RISK_COLORS["low"])
    location = event.district_name + (f" → {event.block_name}" if event.block_name else "")
    parts = [
        '<h1 style="margin:0;color:#1e293b">SignalX Admin Alert</h1>',
        f'<p style="margin:4px 0 20px;color:{color};font-weight:bold">{escape(RISK_LABELS.get(event.risk_level, ""))}</p>',
        f'<h2 style="margin:0 0 8px;color:#1e293b">{escape(ALERT_TITLES.get(event.alert_type, ""))}</h2>',
        _detail("📍 Location", location),
        '<table style="width:100%;border-collapse:collapse;margin:16px 0"><tr>',
    ]
    metrics = (
        ("Available Jobs (Supply)", f"{event.supply_count:,}", "#1e293b"),
        ("Job Seekers (Demand)", f"{event.demand_count:,}", "#1e293b"),
        ("Supply/Demand Ratio", _ratio_label(event.supply_count, event.demand_count), color),
    )
    for label, value, value_color in metrics:
        parts.append(
            '<td style="border:1px solid #e2e8f0;padding:10px;text-align:center">'
            f'<div style="font-size:12px;color:#64748b">{escape(label)}</div>'
            f'<div style="font-size:22px;font-weight:bold;color:{value_color}">{escape(value)}</div></td>'
        )
    parts.append("</tr></table>")
    parts.append(_paragraph("Analysis:", style="margin:12px 0 4px;font-weight:bold;color:#1e293b"))
    parts.append(_paragraph(event.description))
    if event.ai_summary:
        parts.append(_paragraph("🤖 AI Insights:", style="margin:16px 0 4px;font-weight:bold;color:#1e293b"))
        parts.append(
            '<div style="white-space:pre-wrap;background:#f1f5f9;padding:12px;border-radius:6px;'
            f'color:#334155;font-size:14px">{escape(event.ai_summary)}</div>'
        )
    actions = URGENT_ACTIONS if event.risk_level in {"critical", "high"} else MONITOR_ACTIONS
    parts.append(_paragraph("Recommended Actions:", style="margin:16px 0 4px;font-weight:bold;color:#1e293b"))
    parts.extend(_paragraph(f"• {action}", style="margin:2px 0 2px 8px;color:#475569;font-size:14px") for action in actions)
    parts.append(_button(f"{dashboard_url.rstrip('/')}/admin", "Open Admin Dashboard"))
    return _page("".join(parts), accent=color)


def render_bulk_alert(reports: Iterable[RiskAlertEvent], *, dashboard_url: str) -> str:
    reports = list(reports)
    high_risk = count_high_risk(reports)
    parts = [
        '<h1 style="margin:0;color:#1e293b">West Bengal Migration Risk Report</h1>',
        _paragraph(
            f"{len(reports)} Districts Analyzed • {high_risk} High/Critical Risk Areas",
            style="margin:8px 0 24px;color:#64748b",
        ),
    ]
    for report in reports:
        color = RISK_COLORS.get(report.risk_level, RISK_COLORS["low"])
        background = RISK_BACKGROUNDS.get(report.risk_level, "#f8fafc")
        name = report.district_name + (f" ({report.block_name})" if report.block_name else "")
        section = [
            f'<div style="margin-bottom:20px;padding:16px;background:{background};border-left:4px solid {color};border-radius:4px">',
            f'<p style="margin:0;font-weight:bold;color:#334155">{escape(name)} '
            f'<span style="float:right;font-size:12px;text-transform:uppercase;color:{color}">'
            f"{escape(report.risk_level)} Risk</span></p>",
            _detail("Supply (Jobs)", str(report.supply_count)),
            _detail("Demand (Seekers)", str(report.demand_count)),
            _paragraph(report.description, style="margin:8px 0;font-size:14px;color:#475569"),
        ]
        if report.ai_summary:
            section.append(
                _paragraph(
                    f"🤖 AI: {report.ai_summary[:BULK_SUMMARY_LIMIT]}...",
                    style="margin:8px 0 0;font-size:12px;color:#64748b;font-style:italic;"
                    "border-top:1px dashed #cbd5e1;padding-top:8px",
                )
            )
        section.append("</div>")
        parts.extend(section)
    parts.append(_button(f"{dashboard_url.rstrip('/')}/admin", "Open Admin Dashboard"))
    return _page("".join(parts))


def count_high_risk(reports: Iterable[RiskAlertEvent]) -> int:
    return sum(1 for report in reports if report.risk_level in {"critical", "high"})


def render_application_status(
    *,
    worker_name: str,
    job_title: str,
    employer_name: str,
    status: str,
    message: str,
    dashboard_url: str,
    employer_contact: str | None = None,
) -> str:
    accepted = status == "accepted"
    base = dashboard_url.rstrip("/")
    parts = [
        '<h1 style="margin:0;color:#1e293b">SignalX</h1>',
        _paragraph(
            "আবেদন গৃহীত | Application Accepted" if accepted else "আবেদন আপডেট | Application Update",
            style="margin:4px 0 20px;color:#64748b",
        ),
        _paragraph(f"নমস্কার {worker_name},"),
    ]
    if accepted:
        parts.append(_paragraph("অভিনন্দন! আপনার আবেদন গৃহীত হয়েছে।"))
        parts.append(_paragraph("Congratulations! Your application has been accepted."))
    else:
        parts.append(_paragraph("আপনার আবেদনের জন্য ধন্যবাদ।"))
        parts.append(_paragraph("Thank you for your application."))
    parts.append('<div style="background:#f1f5f9;padding:16px;border-radius:6px;margin:16px 0">')
    parts.append(f'<h2 style="margin:0 0 8px;color:#1e293b">{escape(job_title)}</h2>')
    parts.append(_detail("🏢 Employer", employer_name))
    if accepted and employer_contact:
        parts.append(_detail("📞 Contact", employer_contact))
    parts.append("</div>")
    if message:
        parts.append(_paragraph("Message:", style="margin:12px 0 4px;font-weight:bold;color:#1e293b"))
        parts.append(_paragraph(message))
    if accepted:
        parts.append(_button(f"{base}/applications", "View Application"))
    else:
        parts.append(_paragraph("Don't give up! There are many more opportunities waiting for you."))
        parts.append(_button(f"{base}/jobs", "Browse More Jobs"))
    return _page("".join(parts), accent="#10B981" if accepted else _BRAND)


def render_job_alert(
    *,
    worker_name: str,
    job_title: str,
    employer_name: str,
    location: str,
    salary: str,
    skills: list[str],
    job_id: str,
    dashboard_url: str,
) -> str:
    parts = [
        '<h1 style="margin:0;color:#1e293b">SignalX</h1>',
        _paragraph("নতুন কাজের সুযোগ | New Job Alert", style="margin:4px 0 20px;color:#64748b"),
        _paragraph(f"নমস্কার {worker_name},"),
        _paragraph("আপনার দক্ষতার সাথে মিলে যায় এমন একটি নতুন কাজ পাওয়া গেছে!"),
        _paragraph("A new job matching your skills is available!"),
        '<div style="background:#f1f5f9;padding:16px;border-radius:6px;margin:16px 0">',
        f'<h2 style="margin:0 0 8px;color:#1e293b">{escape(job_title)}</h2>',
        _detail("🏢 Employer", employer_name),
        _detail("📍 Location", location),
        _detail("💰 Salary", f"₹{salary}"),
        _detail("🛠 Skills", ", ".join(skills) if skills else "Not specified"),
        "</div>",
        _button(f"{dashboard_url.rstrip('/')}/jobs/{job_id}", "View Job & Apply"),
    ]
    return _page("".join(parts))


def render_new_application(
    *,
    employer_name: str,
    worker_name: str,
    worker_phone: str | None,
    worker_email: str | None,
    job_title: str,
    worker_skills: list[str],
    worker_experience: int,
    worker_education: str,
    application_id: str,
    dashboard_url: str,
) -> str:
    parts = [
        '<h1 style="margin:0;color:#1e293b">SignalX</h1>',
        _paragraph("New Application Received", style="margin:4px 0 20px;color:#64748b"),
        _paragraph(f"Hello {employer_name},"),
        _paragraph(f"{worker_name} has applied for your job posting: {job_title}."),
        '<div style="background:#f1f5f9;padding:16px;border-radius:6px;margin:16px 0">',
        f'<h2 style="margin:0 0 8px;color:#1e293b">{escape(worker_name)}</h2>',
        _detail("📞 Phone", worker_phone or "Not provided"),
        _detail("✉️ Email", worker_email or "Not provided"),
        _detail("🛠 Skills", ", ".join(worker_skills) if worker_skills else "Not specified"),
        _detail("📅 Experience", f"{worker_experience} years"),
        _detail("🎓 Education", worker_education),
        "</div>",
        _paragraph(f"Application ID: {application_id}", style="margin:8px 0;color:#94a3b8;font-size:12px"),
        _button(f"{dashboard_url.rstrip('/')}/dashboard/jobs", "Review Application"),
    ]
    return _page("".join(parts))
