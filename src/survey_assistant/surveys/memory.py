"""In-memory survey workspace, seedable from a JSON document."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from survey_assistant.errors import (
    PermissionDeniedError,
    SurveyNotFoundError,
    SurveyStateError,
)
from survey_assistant.storage.models import Identity
from survey_assistant.surveys.models import (
    CompanyAssignment,
    EmployeeAssignment,
    Invitation,
    Question,
    Reminder,
    SentimentAnalysis,
    Survey,
    WorkspaceData,
)
from survey_assistant.tools.schemas import (
    AddSurveyQuestionsInput,
    CreateSurveyInput,
    GetNonRespondentsInput,
    GetSurveysInput,
    SurveyLookupInput,
)

MANAGER_ROLES = ("admin", "specialist")
CHOICE_TYPES = ("multiple_choice", "single_choice")


def _rate(completed: int, assigned: int) -> int:
    return round(completed / assigned * 100) if assigned > 0 else 0


def _is_scoped_hr(identity: Identity) -> bool:
    return identity.role == "hr" and bool(identity.company_id)


def _require_manager(identity: Identity, action: str) -> None:
    if identity.role not in MANAGER_ROLES:
        raise PermissionDeniedError(f"Only administrators and specialists can {action}.")


class InMemorySurveyWorkspace:
    """Survey data and operations held in process memory."""

    def __init__(
        self, data: WorkspaceData | None = None, *, app_base_url: str = "http://localhost:3000"
    ) -> None:
        self.data = data or WorkspaceData()
        self.app_base_url = app_base_url.rstrip("/")
        self._lock = threading.RLock()

    @classmethod
    def from_json(cls, path: str | Path, **kwargs: Any) -> InMemorySurveyWorkspace:
        raw = Path(path).read_text(encoding="utf-8")
        return cls(WorkspaceData.model_validate_json(raw), **kwargs)

    # Lookup helpers.

    def get_survey(self, survey_id: str) -> Survey | None:
        for survey in self.data.surveys:
            if survey.id == survey_id:
                return survey
        return None

    def _newest_first(self) -> list[Survey]:
        return sorted(self.data.surveys, key=lambda survey: survey.created_at, reverse=True)

    def _visible_to(self, identity: Identity, survey: Survey) -> bool:
        if not _is_scoped_hr(identity):
            return True
        return survey.scope == "holding" or survey.company_id == identity.company_id

    def find_survey(self, identity: Identity, lookup: SurveyLookupInput) -> Survey | None:
        if lookup.survey_id:
            return self.get_survey(lookup.survey_id)
        if lookup.title:
            needle = lookup.title.lower()
            for survey in self._newest_first():
                if needle in survey.title.lower():
                    return survey
            return None
        if lookup.latest:
            for survey in self._newest_first():
                if self._visible_to(identity, survey):
                    return survey
        return None

    def suggest_titles(self, title: str, limit: int = 5) -> list[str]:
        needle = title.lower()
        surveys = self._newest_first()
        matches = [survey.title for survey in surveys if needle in survey.title.lower()]
        if matches:
            return matches[:limit]
        words = [word for word in needle.split() if word]
        if len(words) < 2:
            return []
        return [
            survey.title
            for survey in surveys
            if any(word in survey.title.lower() for word in words)
        ][:limit]

    def resolve_survey(
        self, identity: Identity, lookup: SurveyLookupInput, *, message: str = "Survey not found."
    ) -> Survey:
        survey = self.find_survey(identity, lookup)
        if survey is None:
            suggestions = self.suggest_titles(lookup.title) if lookup.title else []
            raise SurveyNotFoundError(message, suggestions)
        return survey

    def _require_survey(self, survey_id: str) -> Survey:
        survey = self.get_survey(survey_id)
        if survey is None:
            raise SurveyNotFoundError("Survey not found.")
        return survey

    def _check_view(self, identity: Identity, survey: Survey, what: str = "view surveys") -> None:
        if (
            survey.scope == "company"
            and _is_scoped_hr(identity)
            and survey.company_id != identity.company_id
        ):
            raise PermissionDeniedError(f"You can only {what} within your company.")

    def _check_company_access(self, identity: Identity, survey: Survey, what: str) -> None:
        if _is_scoped_hr(identity) and survey.company_id != identity.company_id:
            raise PermissionDeniedError(f"You can only {what} within your company.")

    def _company_employee_ids(self, company_id: str) -> set[str]:
        return {employee.id for employee in self.data.employees if employee.company_id == company_id}

    def _assigned_employee_ids(self, survey_id: str) -> list[str]:
        return [item.employee_id for item in self.data.assignments if item.survey_id == survey_id]

    def _completed_employee_ids(self, survey_id: str) -> set[str]:
        return {
            item.employee_id
            for item in self.data.responses
            if item.survey_id == survey_id and item.status == "completed"
        }

    def _company_name(self, company_id: str | None) -> str:
        for company in self.data.companies:
            if company.id == company_id:
                return company.name
        return ""

    # Read operations.

    def get_survey_progress(self, identity: Identity, lookup: SurveyLookupInput) -> dict[str, Any]:
        with self._lock:
            survey = self.resolve_survey(
                identity, lookup, message="Survey not found. Please provide a valid survey name or ID."
            )
            self._check_view(identity, survey)
            assigned = self._assigned_employee_ids(survey.id)
            completed = self._completed_employee_ids(survey.id)

            summary: dict[str, Any] = {
                "survey_id": survey.id,
                "title": survey.title,
                "status": survey.status,
                "scope": survey.scope,
            }
            if survey.scope == "company":
                done = sum(1 for employee_id in assigned if employee_id in completed)
                summary.update(
                    total_assigned=len(assigned),
                    total_completed=done,
                    completion_rate=_rate(done, len(assigned)),
                )
                return {"summary": summary}

            company_ids = [
                item.company_id
                for item in self.data.company_assignments
                if item.survey_id == survey.id
            ]
            if _is_scoped_hr(identity):
                company_ids = [cid for cid in company_ids if cid == identity.company_id]
            by_company = []
            for company_id in company_ids:
                members = self._company_employee_ids(company_id)
                company_assigned = [eid for eid in assigned if eid in members]
                company_done = sum(1 for eid in company_assigned if eid in completed)
                by_company.append(
                    {
                        "company_id": company_id,
                        "company_name": self._company_name(company_id),
                        "total_assigned": len(company_assigned),
                        "total_completed": company_done,
                        "completion_rate": _rate(company_done, len(company_assigned)),
                    }
                )
            total_assigned = sum(item["total_assigned"] for item in by_company)
            total_completed = sum(item["total_completed"] for item in by_company)
            summary.update(
                total_assigned=total_assigned,
                total_completed=total_completed,
                completion_rate=_rate(total_completed, total_assigned),
            )
            return {"summary": summary, "by_company": by_company}

    def get_non_respondents(
        self,
        identity: Identity,
        lookup: GetNonRespondentsInput | SurveyLookupInput,
        *,
        unlimited: bool = False,
    ) -> dict[str, Any]:
        with self._lock:
            survey = self.resolve_survey(
                identity, lookup, message="Survey not found. Please provide a valid survey name or ID."
            )
            self._check_view(identity, survey)
            completed = self._completed_employee_ids(survey.id)
            statuses = {
                item.employee_id: item.status
                for item in self.data.responses
                if item.survey_id == survey.id
            }
            employees_by_id = {employee.id: employee for employee in self.data.employees}
            allowed = (
                self._company_employee_ids(identity.company_id)
                if _is_scoped_hr(identity)
                else None
            )

            pending = []
            for employee_id in self._assigned_employee_ids(survey.id):
                if employee_id in completed:
                    continue
                if allowed is not None and employee_id not in allowed:
                    continue
                employee = employees_by_id.get(employee_id)
                pending.append(
                    {
                        "employee_id": employee_id,
                        "full_name": employee.full_name if employee else "",
                        "email": employee.email if employee else None,
                        "department": employee.department if employee else None,
                        "response_status": statuses.get(employee_id, "pending"),
                    }
                )
            limit = len(pending) if unlimited else getattr(lookup, "limit", None) or 50
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "count": len(pending),
                "employees": pending[:limit],
            }

    def get_invitation_status(self, identity: Identity, lookup: SurveyLookupInput) -> dict[str, Any]:
        with self._lock:
            survey = self.resolve_survey(
                identity, lookup, message="Survey not found. Please provide a valid survey name or ID."
            )
            self._check_view(identity, survey)
            invitations = [item for item in self.data.invitations if item.survey_id == survey.id]
            if _is_scoped_hr(identity):
                members = self._company_employee_ids(identity.company_id)
                invitations = [item for item in invitations if item.employee_id in members]
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "total": len(invitations),
                "sent": sum(1 for item in invitations if item.status == "sent"),
                "delivered": sum(1 for item in invitations if item.status == "delivered"),
                "clicked": sum(1 for item in invitations if item.clicked_at is not None),
                "completed": sum(
                    1
                    for item in invitations
                    if item.status == "completed" or item.completed_at is not None
                ),
                "failed": sum(1 for item in invitations if item.status == "failed"),
                "bounced": sum(1 for item in invitations if item.status == "bounced"),
            }

    def get_surveys(self, identity: Identity, query: GetSurveysInput) -> dict[str, Any]:
        status = query.status or "all"
        limit = query.limit or 10
        with self._lock:
            items = [
                {
                    "id": survey.id,
                    "title": survey.title,
                    "status": survey.status,
                    "scope": survey.scope,
                    "deadline": survey.deadline,
                    "created_at": survey.created_at.isoformat(),
                }
                for survey in self._newest_first()
                if (status == "all" or survey.status == status)
                and self._visible_to(identity, survey)
            ][:limit]
        return {"total": len(items), "items": items}

    def get_report_data(self, identity: Identity, lookup: SurveyLookupInput) -> dict[str, Any]:
        with self._lock:
            survey = self.resolve_survey(identity, lookup)
            self._check_company_access(identity, survey, "access reports")
            assigned = len(self._assigned_employee_ids(survey.id))
            completed = len(self._completed_employee_ids(survey.id))
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "company_name": self._company_name(survey.company_id),
                "question_count": sum(1 for q in self.data.questions if q.survey_id == survey.id),
                "response_count": completed,
                "completion_rate": _rate(completed, assigned),
                "report_url": f"{self.app_base_url}/forms/{survey.id}/report",
            }

    def check_sentiment_analysis(
        self, identity: Identity, lookup: SurveyLookupInput
    ) -> dict[str, Any]:
        """Whether an analysis can be started; nothing is created here."""
        with self._lock:
            survey = self.resolve_survey(identity, lookup)
            _require_manager(identity, "request AI analysis")
            running = self._running_analysis(survey.id)
            if running is not None:
                return {
                    "survey_id": survey.id,
                    "survey_title": survey.title,
                    "analysis_id": running.id,
                    "responses_count": 0,
                    "status": running.status,
                    "message": f'An analysis is already {running.status} for "{survey.title}".',
                }
            responses = len(self._completed_employee_ids(survey.id))
            if responses == 0:
                raise SurveyStateError(
                    f'No completed responses found for "{survey.title}". '
                    "Cannot run sentiment analysis on empty data."
                )
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "analysis_id": "",
                "responses_count": responses,
                "status": "ready",
                "message": f'Ready to analyze {responses} responses for "{survey.title}".',
            }

    def _running_analysis(self, survey_id: str) -> SentimentAnalysis | None:
        for analysis in self.data.analyses:
            if analysis.survey_id == survey_id and analysis.status in ("pending", "processing"):
                return analysis
        return None

    def get_sentiment_results(self, identity: Identity, lookup: SurveyLookupInput) -> dict[str, Any]:
        with self._lock:
            survey = self.resolve_survey(identity, lookup)
            self._check_company_access(identity, survey, "access analysis results")
            analyses = sorted(
                (item for item in self.data.analyses if item.survey_id == survey.id),
                key=lambda item: item.created_at,
                reverse=True,
            )
            if not analyses:
                raise SurveyStateError(
                    f'No sentiment analysis found for "{survey.title}". '
                    "You can trigger one using the sentiment analysis tool."
                )
            latest = analyses[0]
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "analysis_id": latest.id,
                "status": latest.status,
                "completed_at": latest.completed_at.isoformat() if latest.completed_at else None,
                "results": latest.results,
                "error_message": latest.error_message,
            }

    def get_companies(self, identity: Identity) -> dict[str, Any]:
        _require_manager(identity, "list companies")
        with self._lock:
            companies = sorted(self.data.companies, key=lambda company: company.name)
            counts: dict[str, int] = {}
            for employee in self.data.employees:
                if employee.role == "employee":
                    counts[employee.company_id] = counts.get(employee.company_id, 0) + 1
            return {
                "total": len(companies),
                "companies": [
                    {
                        "id": company.id,
                        "name": company.name,
                        "industry": company.industry,
                        "employee_count": counts.get(company.id, 0),
                    }
                    for company in companies
                ],
            }

    def count_company_employees(self, company_ids: list[str]) -> int:
        with self._lock:
            wanted = set(company_ids)
            return sum(
                1
                for employee in self.data.employees
                if employee.company_id in wanted and employee.role == "employee"
            )

    def count_assignments(self, survey_id: str, company_id: str | None = None) -> int:
        with self._lock:
            assigned = self._assigned_employee_ids(survey_id)
            if company_id:
                members = {
                    employee.id
                    for employee in self.data.employees
                    if employee.company_id == company_id and employee.role == "employee"
                }
                if members:
                    assigned = [eid for eid in assigned if eid in members]
            return len(assigned)

    def company_names(self, company_ids: list[str]) -> list[str]:
        with self._lock:
            wanted = set(company_ids)
            return [company.name for company in self.data.companies if company.id in wanted]

    # Draft editing.

    def create_survey(self, identity: Identity, payload: CreateSurveyInput) -> dict[str, Any]:
        _require_manager(identity, "create surveys")
        if payload.scope == "company" and identity.role == "specialist":
            raise PermissionDeniedError(
                'Specialists can only create holding-scope surveys. Use scope "holding".'
            )
        if payload.scope == "company" and not payload.company_id:
            raise ValueError(
                "Company-scope surveys require a companyId. "
                "Use get_companies to see available companies."
            )
        now = datetime.now(UTC)
        survey = Survey(
            id=str(uuid4()),
            title=payload.title,
            status="draft",
            scope=payload.scope,
            company_id=payload.company_id if payload.scope == "company" else None,
            description=payload.description,
            deadline=payload.deadline,
            created_by=identity.user_id,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.data.surveys.append(survey)
        return {
            "survey_id": survey.id,
            "title": survey.title,
            "scope": survey.scope,
            "status": survey.status,
            "description": survey.description,
            "deadline": survey.deadline,
        }

    def add_survey_questions(
        self, identity: Identity, payload: AddSurveyQuestionsInput
    ) -> dict[str, Any]:
        _require_manager(identity, "add survey questions")
        with self._lock:
            survey = self._require_survey(payload.survey_id)
            if survey.status != "draft":
                raise SurveyStateError(
                    f'Cannot add questions to survey "{survey.title}": it is currently '
                    f'"{survey.status}". Only draft surveys can be modified.'
                )
            for question in payload.questions:
                if question.type in CHOICE_TYPES and len(question.options or []) < 2:
                    raise ValueError(
                        f'Question "{question.question_code}" is type "{question.type}" but has '
                        "fewer than 2 options. Choice questions require at least 2 options."
                    )
            existing = sum(1 for q in self.data.questions if q.survey_id == survey.id)
            for offset, question in enumerate(payload.questions, start=1):
                self.data.questions.append(
                    Question(
                        id=str(uuid4()),
                        survey_id=survey.id,
                        question_code=question.question_code,
                        question_text=question.question_text,
                        type=question.type,
                        options=list(question.options or []),
                        section_name=question.section_name,
                        question_order=existing + offset,
                        is_required=question.is_required,
                        description=question.description,
                    )
                )
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "questions_added": len(payload.questions),
                "total_questions": existing + len(payload.questions),
            }

    # Pre-checks for proposals.

    def check_assignable(self, identity: Identity, survey_id: str) -> Survey:
        _require_manager(identity, "assign surveys to companies")
        with self._lock:
            survey = self._require_survey(survey_id)
            if survey.scope != "holding":
                raise SurveyStateError(
                    f'Survey "{survey.title}" is company-scope. Only holding-scope surveys '
                    "can be assigned to multiple companies."
                )
            if survey.status != "draft":
                raise SurveyStateError(
                    f'Cannot assign companies to survey "{survey.title}": it is currently '
                    f'"{survey.status}". Only draft surveys can be assigned.'
                )
            return survey

    def check_invitable(self, survey_id: str) -> Survey:
        with self._lock:
            survey = self._require_survey(survey_id)
            if survey.status != "active":
                raise SurveyStateError(
                    f'Cannot send invitations for survey "{survey.title}": it is currently '
                    f'"{survey.status}". Only active surveys can have invitations sent.'
                )
            return survey

    # Real execution, reached only through confirmed actions.

    def activate_survey(self, identity: Identity, survey_id: str) -> dict[str, Any]:
        return self._change_status(identity, survey_id, "draft", "active", "activate")

    def close_survey(self, identity: Identity, survey_id: str) -> dict[str, Any]:
        return self._change_status(identity, survey_id, "active", "closed", "close")

    def _change_status(
        self, identity: Identity, survey_id: str, expected: str, target: str, verb: str
    ) -> dict[str, Any]:
        with self._lock:
            survey = self._require_survey(survey_id)
            self._check_company_access(identity, survey, "modify surveys")
            if survey.status != expected:
                raise SurveyStateError(
                    f'Cannot {verb} survey "{survey.title}": it is currently "{survey.status}". '
                    f"Only {expected} surveys can be {verb}d."
                )
            updated = survey.model_copy(update={"status": target, "updated_at": datetime.now(UTC)})
            self.data.surveys = [updated if s.id == survey.id else s for s in self.data.surveys]
            return {
                "survey_id": survey.id,
                "title": survey.title,
                "previous_status": expected,
                "new_status": target,
            }

    def assign_survey_to_companies(
        self, identity: Identity, survey_id: str, company_ids: list[str]
    ) -> dict[str, Any]:
        with self._lock:
            survey = self.check_assignable(identity, survey_id)
            known = {company.id for company in self.data.companies}
            unknown = [cid for cid in company_ids if cid not in known]
            if unknown:
                raise ValueError(f"Unknown company ids: {', '.join(unknown)}")
            already = {
                item.company_id
                for item in self.data.company_assignments
                if item.survey_id == survey.id
            }
            new_company_ids = [cid for cid in dict.fromkeys(company_ids) if cid not in already]
            if not new_company_ids:
                raise SurveyStateError("All specified companies are already assigned to this survey.")

            for company_id in new_company_ids:
                self.data.company_assignments.append(
                    CompanyAssignment(
                        survey_id=survey.id, company_id=company_id, assigned_by=identity.user_id
                    )
                )
            existing = set(self._assigned_employee_ids(survey.id))
            per_company: dict[str, int] = {}
            added = 0
            for employee in self.data.employees:
                if employee.company_id not in new_company_ids or employee.role != "employee":
                    continue
                if employee.id in existing:
                    continue
                self.data.assignments.append(
                    EmployeeAssignment(
                        survey_id=survey.id, employee_id=employee.id, assigned_by=identity.user_id
                    )
                )
                per_company[employee.company_id] = per_company.get(employee.company_id, 0) + 1
                added += 1
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "companies_assigned": len(new_company_ids),
                "employees_assigned": added,
                "company_details": [
                    {
                        "company_id": company_id,
                        "company_name": self._company_name(company_id) or "Unknown",
                        "employee_count": per_company.get(company_id, 0),
                    }
                    for company_id in new_company_ids
                ],
            }

    def send_reminders(
        self, identity: Identity, survey_id: str, employee_ids: list[str] | None = None
    ) -> dict[str, Any]:
        with self._lock:
            survey = self._require_survey(survey_id)
            self._check_view(identity, survey)
            if survey.status != "active":
                raise SurveyStateError(
                    f'Cannot send reminders for survey "{survey.title}": it is currently '
                    f'"{survey.status}".'
                )
            completed = self._completed_employee_ids(survey.id)
            assigned = set(self._assigned_employee_ids(survey.id))
            targets = employee_ids if employee_ids else sorted(assigned)
            recipients = [eid for eid in targets if eid in assigned and eid not in completed]
            now = datetime.now(UTC)
            for employee_id in recipients:
                self.data.reminders.append(
                    Reminder(
                        survey_id=survey.id,
                        employee_id=employee_id,
                        sent_by=identity.user_id,
                        sent_at=now,
                    )
                )
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "reminders_sent": len(recipients),
            }

    def start_sentiment_analysis(self, identity: Identity, survey_id: str) -> dict[str, Any]:
        _require_manager(identity, "request AI analysis")
        with self._lock:
            survey = self._require_survey(survey_id)
            running = self._running_analysis(survey.id)
            if running is not None:
                raise SurveyStateError(
                    f'An analysis is already {running.status} for "{survey.title}".'
                )
            responses = len(self._completed_employee_ids(survey.id))
            if responses == 0:
                raise SurveyStateError(
                    f'No completed responses found for "{survey.title}". '
                    "Cannot run sentiment analysis on empty data."
                )
            analysis = SentimentAnalysis(
                id=str(uuid4()),
                survey_id=survey.id,
                status="pending",
                requested_by=identity.user_id,
                created_at=datetime.now(UTC),
            )
            self.data.analyses.append(analysis)
            return {
                "survey_id": survey.id,
                "analysis_id": analysis.id,
                "responses_count": responses,
                "status": analysis.status,
            }

    def send_invitations(
        self, identity: Identity, survey_id: str, company_id: str | None = None
    ) -> dict[str, Any]:
        with self._lock:
            survey = self.check_invitable(survey_id)
            self._check_view(identity, survey)
            assigned = self._assigned_employee_ids(survey.id)
            if company_id:
                members = self._company_employee_ids(company_id)
                assigned = [eid for eid in assigned if eid in members]
            if not assigned:
                raise SurveyStateError(
                    f'No employee assignments found for survey "{survey.title}". '
                    "Assign companies first."
                )
            completed = self._completed_employee_ids(survey.id)
            existing = {
                item.employee_id: item
                for item in self.data.invitations
                if item.survey_id == survey.id
            }
            now = datetime.now(UTC)
            sent = 0
            for employee_id in assigned:
                if employee_id in completed:
                    continue
                previous = existing.get(employee_id)
                if previous is not None:
                    self.data.invitations.remove(previous)
                self.data.invitations.append(
                    Invitation(survey_id=survey.id, employee_id=employee_id, status="sent", sent_at=now)
                )
                sent += 1
            return {
                "survey_id": survey.id,
                "survey_title": survey.title,
                "invitations_sent": sent,
                "skipped_completed": len(assigned) - sent,
            }
