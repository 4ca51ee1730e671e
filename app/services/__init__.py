"""
Services layer - business logic, no HTTP concerns.

- issue_store: Firestore persistence and guarded status writes
- status_workflow: lifecycle state machine
- validation/ + validation_service: validation cascade and verdicts
- submission_service, issue_workflow_service, vote_service, geo_query_service:
  the operations behind the /issues routes
"""
