"""
Live form sessions.

One WebSocket per open form: the connection opens when the form mounts and
closes when it unmounts.  Field edits, suggestion lookups, employee lookups
and saves all go through here.

Messages in::

    {"type": "field", "field": "empNo", "value": "ab1234"}
    {"type": "suggest", "field": "primaryDiagnosis", "query": "fev"}
    {"type": "blur", "field": "primaryDiagnosis"}
    {"type": "tab", "tab": "hospital"}            (clinic only)
    {"type": "save"}
    {"type": "reset"}

Messages out: ``state``, ``suggestions``, ``employee``, ``saved``,
``tabs`` (clinic only) and ``error``.
"""
import asyncio
import json
import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from portal.exceptions import PortalError
from portal.services.forms import new_form, FORM_TYPES
from portal.services.lookup import (DebouncedSuggestions, EmployeeLookup, SuggestionClient, normalize_emp_no,
                                    snap_to_option)
from portal.services.patients import PatientRecordReconciler, PatientSyncStore
from portal.services.records import ClinicService, HospitalService, IsolationService, SurveyService
from portal.services.tabs import TabOrchestrator
from portal.services.upstream import curd_client, dropdown_client
from portal.state import AppState

logger = logging.getLogger(__name__)

RECONCILED_KINDS = {"hospital": HospitalService, "isolation": IsolationService}

# unload-time syncs still running after their socket closed
_background = set()


def _forget(task):
    _background.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error("background patient sync failed", exc_info=task.exception())


async def _ws_error(ws, code: int, message: str, *, reason: str = "", close: bool = False):
    """
    Error frame.  4xxx for protocol errors, 5000 for unexpected failures;
    upstream and validation failures carry their HTTP status and a reason.
    """
    payload = {"type": "error", "code": code, "message": message}
    if reason:
        payload["reason"] = reason
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


class FormSessionConsumer(AsyncWebsocketConsumer):
    MESSAGE_TYPES = {"field", "suggest", "blur", "tab", "save", "reset"}

    async def connect(self):
        self.kind = self.scope["url_route"]["kwargs"].get("kind")
        if self.kind not in FORM_TYPES:
            await self.close(code=4004)
            return

        self.session = self.scope.get("session")
        self.state = await sync_to_async(AppState.hydrate)(self.session)
        if not self.state.is_authenticated:
            await self.close(code=4001)
            return

        self.curd = curd_client(self.state)
        self.dropdown = dropdown_client(self.state)
        self.form = new_form(self.kind)
        self.lookup = EmployeeLookup(self.dropdown, location_id=self.state.location_id)
        self.suggestions = DebouncedSuggestions(SuggestionClient(self.dropdown).search, self._deliver_suggestions)
        self.reconciler = PatientRecordReconciler(self.dropdown)
        self.lookup_task = None
        self.lookup_emp_no = None
        self.tabs = None
        self.tabs_dirty = False

        query = parse_qs((self.scope.get("query_string") or b"").decode())
        clinic_visit_id = (query.get("clinicVisitId") or [""])[0]
        if clinic_visit_id and "clinicVisitId" in self.form.values:
            self.form.set("clinicVisitId", clinic_visit_id)
        if "locationId" in self.form.values and self.state.location_id:
            self.form.set("locationId", self.state.location_id)
        if self.kind == "survey":
            self.form.set("surveyor", self.state.display_name)
        if self.kind == "clinic":
            self.tabs = TabOrchestrator(require_clinic_saved=True)
            self.form.subscribe(self._on_flag)

        await self.accept()
        await self._send_state()
        if self.tabs is not None:
            await self._send_tabs()

    async def disconnect(self, close_code):
        if not hasattr(self, "form"):
            return
        await self.suggestions.close()
        if self.lookup_task is not None and not self.lookup_task.done():
            self.lookup_task.cancel()
        # unmount: best-effort update of an already known patient, not awaited
        if self.kind in RECONCILED_KINDS and self.reconciler.belongs_to(self.form["empNo"]):
            values = dict(self.form.values)
            task = asyncio.ensure_future(sync_to_async(self.reconciler.ensure_synced, thread_sensitive=False)(
                values, on_create_failure="ignore"))
            _background.add(task)
            task.add_done_callback(_forget)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return
        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        handler = getattr(self, f"on_{data.get('type')}", None) if data.get("type") in self.MESSAGE_TYPES else None
        if handler is None:
            await _ws_error(self, 4002, "unsupported_type")
            return
        try:
            await handler(data)
        except PortalError as exc:
            await _ws_error(self, exc.http_status, exc.message, reason=exc.code)
        except Exception:
            logger.exception("form session %s failed handling %s", self.kind, data.get("type"))
            await _ws_error(self, 5000, "server_error")
        if self.tabs_dirty:
            await self._send_tabs()

    # ------------------------------------------------------------------
    # inbound
    # ------------------------------------------------------------------
    async def on_field(self, data):
        path = data.get("field")
        if not isinstance(path, str) or not path:
            await _ws_error(self, 4003, "invalid_field")
            return
        value = data.get("value")
        changed = self.form.set_path(path, value)
        if changed:
            await self._send_state(changed)
        suggestion = self.form.suggestion_for(path)
        if suggestion is not None and isinstance(value, str):
            self.suggestions.request(path, suggestion[0], value)
        if path == "empNo":
            self._maybe_lookup_employee(self.form["empNo"])

    async def on_suggest(self, data):
        path = data.get("field") or ""
        suggestion = self.form.suggestion_for(path)
        if suggestion is None:
            await _ws_error(self, 4003, "invalid_field")
            return
        self.suggestions.request(path, suggestion[0], str(data.get("query") or ""))

    async def on_blur(self, data):
        path = data.get("field") or ""
        suggestion = self.form.suggestion_for(path)
        if suggestion is None:
            return
        value = self.form.get_path(path)
        if not isinstance(value, str):
            return
        snapped = snap_to_option(value, self.suggestions.latest.get(path, []), strict=suggestion[1],
                                 loading=self.suggestions.is_loading(path))
        if snapped != value:
            changed = self.form.set_path(path, snapped)
            await self._send_state(changed)

    async def on_tab(self, data):
        if self.tabs is None:
            await _ws_error(self, 4002, "unsupported_type")
            return
        self.tabs.select(data.get("tab"))
        self.tabs_dirty = True

    async def on_save(self, data):
        result = await sync_to_async(self._save)()
        await self.send(json.dumps({"type": "saved", "kind": self.kind, "data": result}))
        if self.kind == "clinic" and self.tabs is not None and result.get("id") and self.tabs.condition_met:
            self.tabs.mark_clinic_saved(result["id"])
            self.tabs_dirty = True

    async def on_reset(self, data):
        self.suggestions.cancel_all()
        if self.lookup_task is not None and not self.lookup_task.done():
            self.lookup_task.cancel()
        self.lookup.reset()
        self.reconciler = PatientRecordReconciler(self.dropdown)
        self.form.reset()
        if self.tabs is not None:
            self.tabs.reset()
            self.tabs_dirty = True
        await self._send_state()

    # ------------------------------------------------------------------
    # work
    # ------------------------------------------------------------------
    def _save(self):
        if self.kind == "clinic":
            return ClinicService(self.curd).create(self.form)
        if self.kind == "survey":
            survey = SurveyService(self.curd)
            saved = survey.submit(self.form, self.state.display_name)
            return {"record": saved, "todayCount": survey.count_for(self.form["surveyor"])}
        store = PatientSyncStore(self.session) if self.session is not None else None
        emp_no = normalize_emp_no(self.form["empNo"])
        if not self.reconciler.belongs_to(emp_no):
            stored = store.reconciler_for(emp_no, self.dropdown) if store is not None else None
            self.reconciler = stored if stored is not None else PatientRecordReconciler(self.dropdown)
        try:
            return RECONCILED_KINDS[self.kind](self.curd).submit(self.form, self.reconciler)
        finally:
            if store is not None and self.reconciler.patient_id:
                store.save(emp_no, self.reconciler)
                self.session.save()

    def _maybe_lookup_employee(self, value):
        emp_no = normalize_emp_no(value)
        if not self.lookup.should_fetch(emp_no):
            return
        if self.lookup_task is not None and not self.lookup_task.done():
            if self.lookup_emp_no == emp_no:
                return
            self.lookup_task.cancel()
        self.lookup_emp_no = emp_no
        self.lookup_task = asyncio.ensure_future(self._lookup_employee(emp_no))

    async def _lookup_employee(self, emp_no):
        try:
            await self._apply_employee_lookup(emp_no)
        except PortalError as exc:
            await _ws_error(self, exc.http_status, exc.message, reason=exc.code)

    async def _apply_employee_lookup(self, emp_no):
        if self.kind == "survey":
            eligibility = await sync_to_async(SurveyService(self.curd).check_eligibility, thread_sensitive=False)(emp_no)
            if not eligibility.eligible:
                changed = self.form.clear_employee()
                if changed:
                    await self._send_state(changed)
                await _ws_error(self, 403, eligibility.message, reason="not_eligible")
                return
        result = await sync_to_async(self.lookup.fetch, thread_sensitive=False)(emp_no)
        if normalize_emp_no(self.form["empNo"]) != emp_no:
            # stale; the marker stays unset so typing this number again looks it up
            return
        if self.kind in RECONCILED_KINDS and not self.reconciler.belongs_to(emp_no):
            self.reconciler = PatientRecordReconciler(self.dropdown)
        if result is None:
            await self.send(json.dumps({"type": "employee", "empNo": emp_no, "employee": None,
                                        "error": self.lookup.error}))
            return
        self.lookup.mark_applied(emp_no)
        if self.kind in RECONCILED_KINDS:
            self.reconciler.adopt(result)
        changed = self.form.apply_employee(result.employee_fields())
        await self.send(json.dumps({"type": "employee", "empNo": emp_no, "employee": result.to_dict(),
                                    "error": None}))
        if changed:
            await self._send_state(changed)

    def _on_flag(self, name, value):
        self.tabs.observe(name, value)
        self.tabs_dirty = True

    # ------------------------------------------------------------------
    # outbound
    # ------------------------------------------------------------------
    async def _deliver_suggestions(self, field, query, items):
        await self.send(json.dumps({"type": "suggestions", "field": field, "query": query, "items": items}))

    async def _send_state(self, changed=None):
        snapshot = self.form.to_dict()
        if changed is not None:
            snapshot["values"] = {name: snapshot["values"][name] for name in changed}
            snapshot["partial"] = True
        await self.send(json.dumps({"type": "state", **snapshot}))

    async def _send_tabs(self):
        self.tabs_dirty = False
        await self.send(json.dumps({"type": "tabs", **self.tabs.snapshot()}))
