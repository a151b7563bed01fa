import logging
import os
from datetime import date, datetime, time, timedelta
from functools import wraps
from typing import Optional

from flask import (
    Flask,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from config import Config
from fines import JsonViolationStore, fines_for_user
from models import (
    PLATE_PATTERN,
    ReservationRequest,
    ReservationStatus,
    SlotStatus,
    SlotType,
    normalize_plate,
    parse_timestamp,
)
from reservation_manager import ReservationManager
from reservation_store import JsonReservationStore, StoreError
from slot_catalog import get_slot, slots_by_type
from users import UserDirectory

logger = logging.getLogger(__name__)

MAX_DURATION_HOURS = 24


def create_app(test_config: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = app.config["DATA_DIR"]
    manager = ReservationManager(
        JsonReservationStore(os.path.join(data_dir, app.config["RESERVATIONS_FILE"])),
        clock=app.config.get("CLOCK"),
    )
    violations = JsonViolationStore(os.path.join(data_dir, app.config["VIOLATIONS_FILE"]))
    users = UserDirectory(manager, violations, reserved_names=(app.config["OWNER_USERNAME"],))

    app.extensions["reservations"] = manager
    app.extensions["violations"] = violations
    app.extensions["users"] = users

    _register_routes(app)
    logger.info("Parking app ready (data dir: %s)", data_dir)
    return app


# -------------------------
# 共通
# -------------------------
def _manager() -> ReservationManager:
    return current_app.extensions["reservations"]


def _violations() -> JsonViolationStore:
    return current_app.extensions["violations"]


def _users() -> UserDirectory:
    return current_app.extensions["users"]


def require_role(role):
    def wrapper(fn):
        @wraps(fn)
        def inner(*args, **kwargs):
            if session.get("role") != role:
                flash("您沒有操作權限", "error")
                return redirect(url_for("login"))
            return fn(*args, **kwargs)
        return inner
    return wrapper


def current_user_id() -> Optional[str]:
    u = session.get("user_id")
    return u if isinstance(u, str) else None


def parse_booking_window(form) -> tuple[Optional[datetime], Optional[datetime], Optional[str]]:
    """
    日付・開始時刻・時長から予約時間帯を組み立てる
    開始は 30 分刻みで、現在時刻より前は受け付けない
    戻り値: (開始, 終了, エラーメッセージ)
    """
    try:
        day = date.fromisoformat(form.get("date") or "")
        start = time.fromisoformat(form.get("start_time") or "")
        duration = int(form.get("duration") or "")
    except ValueError:
        return None, None, "請輸入正確的日期、時間與時長"
    if start.minute not in (0, 30) or start.second or start.microsecond:
        return None, None, "開始時間需為整點或半點"
    if not 1 <= duration <= MAX_DURATION_HOURS:
        return None, None, "時長需介於 1 到 24 小時"

    start_time = datetime.combine(day, start).astimezone()
    if start_time < _manager().clock():
        return None, None, "無法預約過去的時間"
    return start_time, start_time + timedelta(hours=duration), None


def parse_booking_form(form) -> tuple[Optional[ReservationRequest], Optional[str]]:
    """
    予約フォームの検証（予約管理側では再検証しない）
    戻り値: (予約候補, エラーメッセージ)
    """
    slot = get_slot(form.get("slot_id") or "")
    if slot is None:
        return None, "請選擇有效的車位"

    plate, error = _parse_plate(form)
    if error:
        return None, error

    start_time, end_time, error = parse_booking_window(form)
    if error:
        return None, error

    user = _users().get(current_user_id() or "")
    if user is None:
        return None, "請重新登入"

    return ReservationRequest(
        user_id=user.user_id,
        user_name=user.username,
        email=user.email,
        slot_id=slot.slot_id,
        vehicle_plate=plate,
        start_time=start_time,
        end_time=end_time,
    ), None


def _parse_plate(form) -> tuple[str, Optional[str]]:
    plate = normalize_plate(form.get("vehicle_plate") or "")
    if not plate:
        return plate, "請輸入車牌號碼"
    if not PLATE_PATTERN.match(plate):
        return plate, "車牌格式不正確"
    return plate, None


def _parse_window_args(args) -> tuple[Optional[datetime], Optional[datetime]]:
    try:
        start = parse_timestamp(args.get("start") or "")
        end = parse_timestamp(args.get("end") or "")
    except ValueError:
        return None, None
    if start >= end:
        return None, None
    return start, end


def _register_routes(app: Flask) -> None:
    @app.errorhandler(StoreError)
    def handle_store_error(e):
        logger.error("Storage failure: %s", e)
        if request.path.startswith("/api/"):
            return jsonify({"error": "storage unavailable"}), 503
        return render_template("error.html", message="資料存取失敗，請稍後再試"), 503

    @app.context_processor
    def inject_globals():
        return {
            "poll_interval": current_app.config["POLL_INTERVAL_SECONDS"],
            "ReservationStatus": ReservationStatus,
            "SlotStatus": SlotStatus,
        }

    # -------------------------
    # ルート
    # -------------------------
    @app.route("/", methods=["GET"])
    def root():
        return redirect(url_for("login"))

    # -------------------------
    # ユーザー登録
    # -------------------------
    @app.route("/register", methods=["GET", "POST"])
    def register():
        if session.get("role") == "admin":
            return redirect(url_for("admin_dashboard"))
        if session.get("role") == "user":
            return redirect(url_for("user_dashboard"))

        if request.method == "POST":
            username = (request.form.get("username") or "").strip()
            email = (request.form.get("email") or "").strip()
            pw1 = request.form.get("password") or ""
            pw2 = request.form.get("password2") or ""

            if not username or not email:
                flash("請輸入使用者名稱與電子郵件", "error")
                return render_template("register.html")

            if not pw1:
                flash("請輸入密碼", "error")
                return render_template("register.html")

            if pw1 != pw2:
                flash("兩次輸入的密碼不一致", "error")
                return render_template("register.html")

            if _users().register(username, email, pw1) is None:
                flash("此使用者名稱或電子郵件無法使用", "error")
                return render_template("register.html")

            flash("註冊成功，請登入系統", "success")
            return redirect(url_for("login"))

        return render_template("register.html")

    # -------------------------
    # ログイン
    # -------------------------
    @app.route("/login", methods=["GET", "POST"])
    def login():
        if session.get("role") == "admin":
            return redirect(url_for("admin_dashboard"))
        if session.get("role") == "user":
            return redirect(url_for("user_dashboard"))

        if request.method == "POST":
            username = (request.form.get("username") or "").strip()
            pw = request.form.get("password") or ""

            if username == current_app.config["OWNER_USERNAME"] and pw == current_app.config["OWNER_PASSWORD"]:
                session["user"] = username
                session["role"] = "admin"
                return redirect(url_for("admin_dashboard"))

            user = _users().authenticate(username, pw)
            if user is not None:
                session["user"] = user.username
                session["user_id"] = user.user_id
                session["role"] = "user"
                return redirect(url_for("user_dashboard"))

            flash("登入失敗：使用者名稱或密碼錯誤", "error")

        return render_template("login.html")

    @app.route("/logout")
    def logout():
        session.clear()
        return redirect(url_for("login"))

    # -------------------------
    # ユーザー画面
    # -------------------------
    @app.route("/user")
    @require_role("user")
    def user_dashboard():
        reservations = _manager().reservations_for_user(current_user_id())
        reservations.sort(key=lambda r: r.start_time)
        return render_template("user/dashboard.html", reservations=reservations)

    def _render_slot_map(form, start_time: datetime, end_time: datetime):
        views = {
            v.slot.slot_id: v
            for v in _manager().slot_overview(start_time, end_time, user_id=current_user_id())
        }
        return render_template(
            "user/select_slot.html",
            form=form,
            start_time=start_time,
            end_time=end_time,
            car_slots=[views[s.slot_id] for s in slots_by_type(SlotType.CAR)],
            bike_slots=[views[s.slot_id] for s in slots_by_type(SlotType.BIKE)],
        )

    @app.route("/user/reserve", methods=["GET", "POST"])
    @require_role("user")
    def user_reserve():
        # 1. 時間帯と車牌を入力 -> 2. 車位マップから選択（POST）
        if request.method == "POST":
            candidate, error = parse_booking_form(request.form)
            if candidate is None:
                flash(error, "error")
                return render_template("user/reserve.html", form=request.form)

            manager = _manager()
            conflict = manager.find_conflict(candidate.slot_id, candidate.start_time, candidate.end_time)
            if conflict is None or conflict.user_id == candidate.user_id:
                r = manager.create_reservation(candidate)
                if r is not None:
                    flash(f"預約成功：車位 {r.slot_id}", "success")
                    return redirect(url_for("user_dashboard"))

            flash("此車位在該時段已被預約", "error")
            return _render_slot_map(request.form, candidate.start_time, candidate.end_time)

        if "date" not in request.args:
            return render_template("user/reserve.html", form={})

        _, error = _parse_plate(request.args)
        if error is None:
            start_time, end_time, error = parse_booking_window(request.args)
        if error:
            flash(error, "error")
            return render_template("user/reserve.html", form=request.args)
        return _render_slot_map(request.args, start_time, end_time)

    @app.route("/user/cancel/<reservation_id>", methods=["POST"])
    @require_role("user")
    def user_cancel(reservation_id):
        manager = _manager()
        r = manager.get_reservation(reservation_id)
        if r is None or r.user_id != current_user_id():
            flash("無法操作其他使用者的預約", "error")
            return redirect(url_for("user_dashboard"))

        if r.status == ReservationStatus.COMPLETED:
            flash("已完成的預約無法取消", "error")
            return redirect(url_for("user_dashboard"))

        if manager.cancel_reservation(reservation_id):
            flash(f"已取消車位 {r.slot_id} 的預約", "success")
        else:
            flash("取消失敗", "error")
        return redirect(url_for("user_dashboard"))

    @app.route("/user/fines")
    @require_role("user")
    def user_fines():
        fines = fines_for_user(_manager().plates_for_user(current_user_id()), _violations().load())
        return render_template("user/fines.html", fines=fines)

    # -------------------------
    # 管理者画面
    # -------------------------
    @app.route("/admin")
    @require_role("admin")
    def admin_dashboard():
        reservations = _manager().list_reservations()
        reservations.sort(key=lambda r: r.start_time, reverse=True)
        return render_template(
            "admin/dashboard.html",
            reservations=reservations,
            users=_users().list_users(),
            violations=_violations().load(),
        )

    @app.route("/admin/cancel/<reservation_id>", methods=["POST"])
    @require_role("admin")
    def admin_cancel(reservation_id):
        ok = _manager().cancel_reservation(reservation_id)
        flash("預約已刪除" if ok else "預約不存在", "success" if ok else "error")
        return redirect(url_for("admin_dashboard"))

    @app.route("/admin/users/<user_id>/delete", methods=["POST"])
    @require_role("admin")
    def admin_delete_user(user_id):
        ok = _users().delete_user(user_id)
        flash("使用者已刪除" if ok else "使用者不存在", "success" if ok else "error")
        return redirect(url_for("admin_dashboard"))

    @app.route("/admin/violations", methods=["POST"])
    @require_role("admin")
    def admin_add_violation():
        slot = get_slot(request.form.get("slot_number") or "")
        plate = normalize_plate(request.form.get("license_plate") or "")
        violation_type = (request.form.get("violation_type") or "").strip()
        if slot is None or not plate or not violation_type:
            flash("違規資料不完整", "error")
            return redirect(url_for("admin_dashboard"))

        # 違反はナンバーが一致する予約の持ち主に紐づける（同じ車位の予約を優先）
        matches = [r for r in _manager().list_reservations() if r.vehicle_plate == plate]
        matches.sort(key=lambda r: (r.slot_id == slot.slot_id, r.start_time), reverse=True)
        user_id = matches[0].user_id if matches else session.get("user", "")

        _violations().add(slot.slot_id, violation_type, plate, user_id=user_id)
        flash("違規紀錄已新增", "success")
        return redirect(url_for("admin_dashboard"))

    # -------------------------
    # JSON（画面からのポーリング用）
    # -------------------------
    @app.route("/api/reservations")
    def api_reservations():
        role = session.get("role")
        if role not in ("user", "admin"):
            return jsonify({"error": "login required"}), 401

        reservations = _manager().list_reservations()
        if role == "user":
            reservations = [r for r in reservations if r.user_id == current_user_id()]
        return jsonify([r.to_dict() for r in reservations])

    @app.route("/api/slots")
    def api_slots():
        start, end = _parse_window_args(request.args)
        if start is None:
            return jsonify({"error": "start and end must be ISO timestamps with start < end"}), 400

        views = _manager().slot_overview(start, end, user_id=current_user_id())
        return jsonify([
            {
                "slotId": v.slot.slot_id,
                "type": v.slot.slot_type.value,
                "status": v.status.value,
                "isMine": v.is_mine,
            }
            for v in views
        ])


app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
