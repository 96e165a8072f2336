"""
Planner core: intent recognition, routing and slot-filling workflows.

Per turn:
    text → IntentRecognizer (IntentResult)
         → SmartRouter (RouteResult, entity pool)
         → WorkflowEngine (next widgets or final plan)

ChatOrchestrator sequences the three per session, SessionStore owns them.
"""
