import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from bson import ObjectId
from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, create_refresh_token, jwt_required, get_jwt_identity
from pymongo import DESCENDING
from werkzeug.security import generate_password_hash, check_password_hash

import config
from assistant import HealthAssistant, history_from_payload
from chat_sessions import new_session_id
from errors import InvalidInput, Unauthenticated, register_error_handlers
from health_rules import classify_blood_pressure, classify_blood_sugar, color_for, health_summary
from records import RESPONSE_KEYS, RecordType, build_record, build_symptom_request
from storage import CHATS, SYMPTOM_ANALYSES, HealthStore

logger = logging.getLogger("healthtracker")

api = Blueprint("api", __name__)

# upper bounds for query-string integers
MAX_DAYS = 36500
MAX_INT_ARG = 10000


def configure_logging(level=None):
	root = logging.getLogger()
	if not root.handlers:
		logging.basicConfig(
			level=level or config.LOG_LEVEL,
			format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		)
	logging.getLogger("httpx").setLevel(logging.WARNING)
	return logger


def _utcnow():
	return datetime.now(timezone.utc)


def create_app(store=None, assistant=None, clock=None, config_overrides=None):
	"""Build the Flask app. Collaborators are injected; defaults come from config."""
	configure_logging()
	app = Flask(__name__)
	app.config.update(config.flask_config())
	if config_overrides:
		app.config.update(config_overrides)

	# Enable CORS for the web client
	CORS(app, resources={r"/api/*": {"origins": config.CORS_ORIGINS}})

	jwt = JWTManager(app)
	_register_jwt_handlers(jwt)
	register_error_handlers(app)

	app.extensions["health_store"] = store or HealthStore.from_uri(app.config["MONGO_URI"])
	app.extensions["health_assistant"] = assistant or HealthAssistant(model=app.config["GROQ_CHAT_MODEL"])
	app.extensions["health_clock"] = clock or _utcnow

	app.register_blueprint(api)
	return app


def _register_jwt_handlers(jwt):
	def _unauthorized(*_args):
		return jsonify({"success": False, "message": Unauthenticated.message}), Unauthenticated.status_code

	jwt.unauthorized_loader(_unauthorized)
	jwt.invalid_token_loader(_unauthorized)
	jwt.expired_token_loader(_unauthorized)
	jwt.revoked_token_loader(_unauthorized)
	jwt.needs_fresh_token_loader(_unauthorized)
	jwt.user_lookup_error_loader(_unauthorized)


# ---------------------- Helpers ----------------------
def _store() -> HealthStore:
	return current_app.extensions["health_store"]


def _assistant() -> HealthAssistant:
	return current_app.extensions["health_assistant"]


def _now() -> datetime:
	return current_app.extensions["health_clock"]()


def current_user_id() -> str:
	user_id = get_jwt_identity()
	if not user_id:
		raise Unauthenticated()
	return str(user_id)


def _json_body() -> dict:
	data = request.get_json(silent=True)
	return data if isinstance(data, dict) else {}


def _int_arg(name: str, default: int, max_value: int = MAX_INT_ARG) -> int:
	raw = request.args.get(name)
	if raw is None or raw == "":
		return default
	try:
		value = int(raw)
	except ValueError:
		raise InvalidInput(f"{name} must be an integer")
	if value < 0:
		raise InvalidInput(f"{name} must not be negative")
	if value > max_value:
		raise InvalidInput(f"{name} must be at most {max_value}")
	return value


def serialize(obj):
	"""Make Mongo documents JSON-safe: ObjectId -> str, datetime -> ISO-8601."""
	if isinstance(obj, dict):
		return {k: serialize(v) for k, v in obj.items()}
	if isinstance(obj, (list, tuple)):
		return [serialize(v) for v in obj]
	if isinstance(obj, ObjectId):
		return str(obj)
	if isinstance(obj, (datetime, date)):
		return obj.isoformat()
	if isinstance(obj, Enum):
		return obj.value
	return obj


def _annotate(record_type: RecordType, doc: dict) -> dict:
	"""Attach the health status and color to a blood pressure / blood sugar reading."""
	if record_type is RecordType.BLOOD_PRESSURE:
		status = classify_blood_pressure(doc["systolic"], doc["diastolic"])
	elif record_type is RecordType.BLOOD_SUGAR:
		status = classify_blood_sugar(doc["value"], doc.get("type"))
	else:
		return doc
	doc["status"] = status.value
	doc["color"] = color_for(status)
	return doc


def _list_records(record_type: RecordType, user_id: str, since: datetime, limit: int):
	store = _store()
	if record_type is RecordType.MEDICATION:
		# medications are not date filtered
		return store.find(record_type.collection, user_id, sort=[("created_at", DESCENDING)])
	docs = store.find_since(record_type.collection, user_id, since, limit=limit)
	return [_annotate(record_type, d) for d in docs]


# ---------------------- AUTH APIs ----------------------
@api.route("/api/register", methods=["POST"])
def api_register():
	data = _json_body()
	name = (data.get("name") or "").strip()
	email = (data.get("email") or "").strip().lower()
	password = data.get("password") or ""

	if not email or not password:
		raise InvalidInput("Email and password required")

	store = _store()
	if store.find_user_by_email(email):
		raise InvalidInput("Email already registered")

	user_id = store.create_user({
		"name": name,
		"email": email,
		"password": generate_password_hash(password),
		"created_at": _now(),
	})
	logger.info("Registered user %s", user_id)

	return jsonify({
		"success": True,
		"message": "User registered",
		"access_token": create_access_token(identity=user_id),
		"refresh_token": create_refresh_token(identity=user_id),
	}), 201


@api.route("/api/login", methods=["POST"])
def api_login():
	data = _json_body()
	email = (data.get("email") or "").strip().lower()
	password = data.get("password") or ""

	if not email or not password:
		raise InvalidInput("Email and password required")

	user = _store().find_user_by_email(email)
	stored = user.get("password") if user else None
	if not stored or not check_password_hash(stored, password):
		raise Unauthenticated("Invalid credentials")

	user_id = str(user["_id"])
	return jsonify({
		"success": True,
		"authenticated": True,
		"access_token": create_access_token(identity=user_id),
		"refresh_token": create_refresh_token(identity=user_id),
	})


@api.route("/api/refresh", methods=["POST"])
@jwt_required(refresh=True)
def api_refresh():
	"""Refresh access token using refresh token"""
	access_token = create_access_token(identity=current_user_id())
	return jsonify({"success": True, "access_token": access_token})


@api.route("/api/user", methods=["GET"])
@jwt_required()
def api_user():
	"""Get current user profile - requires JWT token"""
	user = _store().find_user_by_id(current_user_id())
	if not user:
		raise Unauthenticated()

	# Remove password from response
	user.pop("password", None)
	return jsonify({"success": True, "user": serialize(user)})


# ---------------------- CHAT API ----------------------
@api.route("/api/chat", methods=["POST"])
@jwt_required()
def api_chat():
	"""Answer a chat message and store both turns under one session id."""
	user_id = current_user_id()
	data = _json_body()
	message = data.get("message")
	if not isinstance(message, str) or not message.strip():
		raise InvalidInput("Message is required")

	if data.get("session_id") is not None and not isinstance(data["session_id"], str):
		raise InvalidInput("session_id must be a string")

	history = history_from_payload(data.get("chat_history"))
	asked_at = _now()
	reply = _assistant().chat_reply(message, history)
	replied_at = _now()

	session_id = data.get("session_id") or new_session_id(int(replied_at.timestamp() * 1000))
	_store().insert_many(CHATS, [
		{
			"user_id": user_id,
			"session_id": session_id,
			"role": "user",
			"content": message,
			"timestamp": asked_at,
			"created_at": replied_at,
		},
		{
			"user_id": user_id,
			"session_id": session_id,
			"role": "assistant",
			"content": reply,
			"timestamp": replied_at,
			"created_at": replied_at,
		},
	])

	return jsonify({
		"success": True,
		"message": reply,
		"timestamp": serialize(replied_at),
		"session_id": session_id,
	})


@api.route("/api/chat", methods=["GET"])
@jwt_required()
def api_chat_history():
	"""Chronological chat history, optionally for a single session."""
	user_id = current_user_id()
	session_id = request.args.get("session_id")
	limit = _int_arg("limit", 50)

	messages = _store().chat_messages(user_id, session_id=session_id, limit=limit)
	return jsonify({
		"success": True,
		"messages": [
			{
				"role": m.get("role"),
				"content": m.get("content"),
				"timestamp": serialize(m.get("timestamp")),
				"session_id": m.get("session_id"),
			}
			for m in messages
		],
	})


@api.route("/api/chat", methods=["DELETE"])
@jwt_required()
def api_delete_chat():
	user_id = current_user_id()
	session_id = request.args.get("session_id")
	delete_all = request.args.get("delete_all") == "true"

	if delete_all:
		deleted = _store().delete_many(CHATS, user_id)
		message = "All chats deleted"
	elif session_id:
		deleted = _store().delete_many(CHATS, user_id, {"session_id": session_id})
		message = "Chat session deleted"
	else:
		raise InvalidInput("session_id or delete_all=true is required")

	return jsonify({"success": True, "deleted_count": deleted, "message": message})


@api.route("/api/chat/sessions", methods=["GET"])
@jwt_required()
def api_chat_sessions():
	sessions = _store().chat_sessions(current_user_id())
	return jsonify({"success": True, "sessions": [serialize(s.as_dict()) for s in sessions]})


# ---------------------- SYMPTOMS API ----------------------
@api.route("/api/symptoms", methods=["POST"])
@jwt_required()
def api_analyze_symptoms():
	"""
	Analyze a list of symptoms with the AI assistant and keep the result.

	Expected JSON body:
	{
	  "symptoms": [string],      # required, non-empty
	  "additional_info": string, # optional
	  "severity": "mild" | "moderate" | "severe"   # optional, default mild
	}
	"""
	user_id = current_user_id()
	req = build_symptom_request(_json_body())

	analysis = _assistant().analyze_symptoms(req["symptoms"])
	now = _now()
	record = {
		"user_id": user_id,
		"symptoms": req["symptoms"],
		"additional_info": req["additional_info"],
		"severity": req["severity"],
		"analysis": analysis,
		"timestamp": now,
		"created_at": now,
	}
	_store().insert(SYMPTOM_ANALYSES, record)

	return jsonify({
		"success": True,
		"analysis": analysis,
		"timestamp": serialize(now),
		"symptoms": req["symptoms"],
		"severity": req["severity"],
	})


@api.route("/api/symptoms", methods=["GET"])
@jwt_required()
def api_symptom_history():
	user_id = current_user_id()
	limit = _int_arg("limit", 20)

	analyses = _store().find(SYMPTOM_ANALYSES, user_id, sort=[("created_at", DESCENDING)], limit=limit)
	return jsonify({
		"success": True,
		"analyses": [
			{
				"id": str(a["_id"]),
				"symptoms": a.get("symptoms"),
				"additional_info": a.get("additional_info"),
				"severity": a.get("severity"),
				"analysis": a.get("analysis"),
				"timestamp": serialize(a.get("timestamp")),
				"created_at": serialize(a.get("created_at")),
			}
			for a in analyses
		],
	})


# ---------------------- HEALTH RECORDS API ----------------------
@api.route("/api/health", methods=["POST"])
@jwt_required()
def api_create_health_record():
	"""
	Create a health record for the authenticated user.

	Expected JSON body:
	{
	  "type": "blood-pressure" | "blood-sugar" | "weight" | "medication" | "medication-log",
	  "data": {...}              # fields for that record type
	}
	"""
	user_id = current_user_id()
	body = _json_body()
	if not body.get("type") or not body.get("data"):
		raise InvalidInput("Type and data are required")

	record_type = RecordType.parse(body["type"])
	record = build_record(record_type, user_id, body["data"], _now())
	_store().insert(record_type.collection, record)
	logger.info("Stored %s record for user %s", record_type.value, user_id)

	return jsonify({"success": True, "data": serialize(_annotate(record_type, record))}), 201


@api.route("/api/health", methods=["GET"])
@jwt_required()
def api_get_health_records():
	"""List records of one type (or all) from the last ``days`` days, newest first."""
	user_id = current_user_id()
	type_arg = request.args.get("type")
	limit = _int_arg("limit", 100)
	days = _int_arg("days", 30, max_value=MAX_DAYS)
	since = _now() - timedelta(days=days)

	if type_arg == "all":
		wanted = list(RecordType)
	else:
		wanted = [RecordType.parse(type_arg)]

	data = {RESPONSE_KEYS[rt]: _list_records(rt, user_id, since, limit) for rt in wanted}
	return jsonify({"success": True, **serialize(data)})


@api.route("/api/health", methods=["PUT"])
@jwt_required()
def api_replace_health_record():
	"""Replace a record as a whole. Body: {"type": ..., "id": ..., "data": {...}}"""
	user_id = current_user_id()
	body = _json_body()
	if not body.get("type") or not body.get("id") or not body.get("data"):
		raise InvalidInput("Type, id and data are required")

	record_type = RecordType.parse(body["type"])
	record = build_record(record_type, user_id, body["data"], _now())
	updated = _store().replace(record_type.collection, user_id, body["id"], record)

	return jsonify({"success": True, "data": serialize(_annotate(record_type, updated))})


@api.route("/api/health", methods=["DELETE"])
@jwt_required()
def api_delete_health_record():
	user_id = current_user_id()
	type_arg = request.args.get("type")
	record_id = request.args.get("id")
	if not type_arg or not record_id:
		raise InvalidInput("Type and id are required")

	record_type = RecordType.parse(type_arg)
	if record_type is RecordType.MEDICATION_LOG:
		raise InvalidInput("Invalid type")

	_store().delete_one(record_type.collection, user_id, record_id)
	return jsonify({"success": True})


@api.route("/api/health/summary", methods=["GET"])
@jwt_required()
def api_health_summary():
	"""Dashboard overview: latest statuses, weight trend and today's adherence."""
	user_id = current_user_id()
	now = _now()
	since = now - timedelta(days=_int_arg("days", 30, max_value=MAX_DAYS))
	store = _store()

	summary = health_summary(
		blood_pressure=store.find_since(RecordType.BLOOD_PRESSURE.collection, user_id, since, limit=1),
		blood_sugar=store.find_since(RecordType.BLOOD_SUGAR.collection, user_id, since, limit=1),
		weight=store.find_since(RecordType.WEIGHT.collection, user_id, since, limit=2),
		medications=store.find(RecordType.MEDICATION.collection, user_id),
		medication_logs=store.find_since(RecordType.MEDICATION_LOG.collection, user_id, since),
		reference_day=now.date(),
	)
	return jsonify({"success": True, "summary": serialize(summary)})


if __name__ == "__main__":
	# For development only. In production use a WSGI server.
	create_app().run(host="0.0.0.0", port=config.PORT, debug=True)
