"""
Issue endpoints - submission, public feed, officer and reporter actions.

Domain errors (IssueServiceError subclasses) propagate to the handlers in
app.main, which turn them into {success: false, message} responses.
"""

from typing import Dict, Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status

from app.models.issue import IssueResponse, IssueUpdateRequest, ResolutionRejectRequest
from app.services.geo_query_service import get_geo_query_service
from app.services.issue_workflow_service import get_issue_workflow_service
from app.services.submission_service import get_submission_service
from app.services.validation_service import get_validation_service
from app.services.vote_service import get_vote_service
from app.utils.security import get_current_user, require_officer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["Issues"])


def _serialize(issue: Dict) -> Dict:
    return IssueResponse.from_document(issue).model_dump(mode="json")


def _issue_envelope(issue: Dict, message: Optional[str] = None) -> Dict:
    body = {"success": True, "data": {"issue": _serialize(issue)}}
    if message:
        body["message"] = message
    return body


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_issue(
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    imageUrl: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: Dict = Depends(get_current_user)
):
    """
    Submit a new civic issue (multipart form).

    The issue is stored as `pending` and validated in the background.
    """
    image_bytes = None
    image_mime_type = None
    if image is not None:
        image_bytes = image.file.read()
        image_mime_type = image.content_type

    logger.info(f"📝 POST /issues/submit by {current_user['id']}: category={category}")
    issue = get_submission_service().submit_issue(
        reporter_id=current_user["id"],
        title=title,
        description=description,
        category=category,
        location=location,
        image_bytes=image_bytes,
        image_mime_type=image_mime_type,
        image_url=imageUrl,
        background_tasks=background_tasks,
    )
    return _issue_envelope(issue, "Issue submitted and queued for validation")


@router.get("/live")
def get_live_issues(
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, description="Search radius in metres"),
    category: Optional[str] = Query(None, description="Category filter, 'all' for every category")
):
    """Public feed: live issues only, nearest first with coordinates, newest first without."""
    issues = get_geo_query_service().get_live_issues(lat=lat, lng=lng, radius_meters=radius, category=category)
    return {
        "success": True,
        "count": len(issues),
        "data": {"issues": [_serialize(issue) for issue in issues]},
    }


@router.get("/my-issues")
def get_my_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: Dict = Depends(get_current_user)
):
    issues = get_issue_workflow_service().list_reporter_issues(current_user["id"], status_filter)
    return {
        "success": True,
        "count": len(issues),
        "data": {"issues": [_serialize(issue) for issue in issues]},
    }


@router.get("/{issue_id}")
def get_issue(issue_id: str):
    return _issue_envelope(get_issue_workflow_service().get_issue(issue_id))


@router.patch("/{issue_id}")
def update_issue(
    issue_id: str,
    update: IssueUpdateRequest,
    officer: Dict = Depends(require_officer)
):
    """Officer status and/or severity update."""
    issue = get_issue_workflow_service().officer_update(
        issue_id,
        officer["id"],
        status=update.status,
        severity=update.severity,
        note=update.note,
    )
    return _issue_envelope(issue, "Issue updated")


@router.post("/{issue_id}/upvote")
def upvote_issue(issue_id: str):
    return _issue_envelope(get_vote_service().upvote(issue_id), "Upvoted")


@router.post("/{issue_id}/verify")
def verify_resolution(issue_id: str, current_user: Dict = Depends(get_current_user)):
    issue = get_issue_workflow_service().verify_resolution(issue_id, current_user["id"])
    return _issue_envelope(issue, "Resolution verified")


@router.post("/{issue_id}/reject")
def reject_resolution(
    issue_id: str,
    body: Optional[ResolutionRejectRequest] = None,
    current_user: Dict = Depends(get_current_user)
):
    reason = body.reason if body else None
    issue = get_issue_workflow_service().reject_resolution(issue_id, current_user["id"], reason)
    return _issue_envelope(issue, "Issue reopened")


@router.delete("/{issue_id}")
def delete_issue(issue_id: str, current_user: Dict = Depends(get_current_user)):
    get_issue_workflow_service().delete_issue(issue_id, current_user["id"])
    return {"success": True, "message": "Issue deleted"}


@router.post("/{issue_id}/revalidate")
def revalidate_issue(issue_id: str, officer: Dict = Depends(require_officer)):
    """Re-run validation for an issue still pending (e.g. every provider failed earlier)."""
    logger.info(f"Re-validation of issue {issue_id} requested by {officer['id']}")
    issue = get_validation_service().revalidate(issue_id)
    return _issue_envelope(issue, f"Issue is {issue.get('status')}")
