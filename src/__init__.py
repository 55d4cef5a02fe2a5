"""Clinic concierge agent: a WhatsApp assistant for Serenity Health Clinic.

Architecture Overview
=====================

Patients message the clinic on WhatsApp.  Each inbound message is queued
by the webhook and handled by a ``MessageProcessor``, which loads the
patient's conversation, runs the **orchestrator** and sends the reply.

The orchestrator is a **LangGraph** state machine:

1. **model**: Claude (via ``langchain_anthropic``) sees the conversation
   and the tool schemas, then either answers or requests tool calls.
2. **tools**: all calls from one model turn run in parallel; each failure
   is recorded on its own result and never aborts its siblings.
3. **wrap_up**: fallback answer when the model goes silent or the loop
   hits ``MAX_TURNS``.

Scheduling tools turn phrases like "next friday" / "5:30pm" into instants
in the service's timezone, compute free slots from the calendar's busy
intervals and book conflict-free appointments.

Package Structure
-----------------
- ``src/agent.py``: orchestrator graph and tool wiring
- ``src/conversation.py``: history turns, tool calls/results, contexts
- ``src/config.py``: configuration from env vars / SSM
- ``src/prompts.py``: system instruction
- ``src/server.py``: FastAPI application
- ``src/main.py``: CLI chat interface
- ``src/scheduling/``: day/time parsing and slot arithmetic
- ``src/services/``: HTTP collaborators, LLM adapter, stores, metrics
- ``src/tools/``: tool registry, executor and the tools themselves
- ``src/api/``: FastAPI routes and Pydantic schemas
"""
