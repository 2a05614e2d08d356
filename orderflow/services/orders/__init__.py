"""
Order routing and worklist services.

Pure classification code (enums, state_machine, predicates, pricing,
threshold, classifier, summary, numbering, notifications) performs no I/O.
The deletion orchestrator, repository and service modules talk to the
datastore.
"""
