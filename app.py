"""Workout Tracker - Streamlit App."""

import logging
from typing import Optional

import streamlit as st

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from src.memory.gdrive_memory import GoogleDriveStorage
from src.memory.workout_repository import WorkoutRepository
from src.models.session import WorkingExercise, WorkingSet
from src.session import mode as modes
from src.session.plans import DAYS_OF_WEEK, REST_DAY, available_split_days, build_plan, plans_from_schedule
from src.session.reconciler import WorkoutSessionReconciler
from src.utils.errors import AuthenticationError, TrackerError
from src.utils.exercise_catalog import normalize_name, search
from src.utils.gemini_langchain_client import GeminiLangChainClient
from src.utils.google_auth import (
    AuthSession,
    credentials_to_dict,
    exchange_code_for_token,
    get_authorization_url,
    get_user_info,
    revoke_credentials,
)
from src.utils.settings import load_settings
from src.utils.suggestions import RefreshSignals, SuggestionService

st.set_page_config(
    page_title="Workout Tracker",
    page_icon="🏋️",
    layout="wide",
)

KIND_LABELS = {"normal": "N", "warmup": "W", "dropset": "D"}


def initialize_session_state() -> None:
    """Initialize all session state variables."""
    defaults = {
        "authenticated": False,
        "user_info": None,
        "credentials": None,
        "settings": None,
        "refresh_signals": None,
        "repository": None,
        "suggestions": None,
        "reconciler": None,
        "creating_plan": False,
        "new_plan_exercises": [],
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value

    if st.session_state.settings is None:
        st.session_state.settings = load_settings(st.secrets)
    if st.session_state.refresh_signals is None:
        st.session_state.refresh_signals = RefreshSignals()


def get_redirect_uri() -> str:
    """Get OAuth redirect URI based on environment."""
    try:
        if st.secrets.get("redirect_uri"):
            return st.secrets["redirect_uri"]
    except FileNotFoundError:
        pass
    return "http://localhost:8501"


def get_client_config() -> dict:
    """Get Google OAuth client configuration from secrets."""
    return {
        "web": {
            "client_id": st.secrets["google_oauth"]["client_id"],
            "client_secret": st.secrets["google_oauth"]["client_secret"],
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    }


def handle_oauth_callback() -> None:
    """Handle OAuth callback with authorization code."""
    if "code" not in st.query_params:
        return
    if st.session_state.authenticated:
        st.query_params.clear()
        return

    try:
        credentials = exchange_code_for_token(
            st.query_params["code"], get_client_config(), get_redirect_uri()
        )
        st.query_params.clear()
        user_info = get_user_info(credentials)
        logger.info(f"Logged in as {user_info.get('email')}")

        st.session_state.credentials = credentials_to_dict(credentials)
        st.session_state.user_info = user_info
        st.session_state.authenticated = True
        st.rerun()
    except Exception as e:
        logger.error(f"OAuth error: {str(e)}", exc_info=True)
        st.query_params.clear()
        st.error(f"Login failed: {str(e)}")


def current_auth() -> AuthSession:
    user_info = st.session_state.user_info or {}
    return AuthSession.from_dict(st.session_state.credentials, user_info.get("email"))


def initialize_services() -> None:
    """Create the store, repository and suggestion service once per login."""
    if st.session_state.repository is not None:
        return

    auth = current_auth()
    auth.current_user_id()
    st.session_state.credentials = auth.to_dict()

    settings = st.session_state.settings
    storage = GoogleDriveStorage(auth.credentials, app_folder_name=settings.app_folder_name)
    st.session_state.repository = WorkoutRepository(storage)

    client = None
    if st.secrets.get("GEMINI_API_KEY"):
        client = GeminiLangChainClient(
            api_key=st.secrets["GEMINI_API_KEY"],
            model_name=settings.suggestion_model,
        )
    st.session_state.suggestions = SuggestionService(
        storage,
        client=client,
        signals=st.session_state.refresh_signals,
        limit=settings.suggestion_limit,
    )


def close_screen() -> None:
    """Leave the current workout screen, auto-saving a running workout."""
    reconciler: Optional[WorkoutSessionReconciler] = st.session_state.reconciler
    if reconciler is not None:
        outcome = reconciler.teardown()
        if outcome:
            st.toast("Unfinished workout saved")
    st.session_state.reconciler = None


def open_screen(plan_id: Optional[str] = None, record_id: Optional[str] = None) -> None:
    close_screen()
    reconciler = WorkoutSessionReconciler(
        st.session_state.repository,
        current_auth(),
        suggestions=st.session_state.suggestions,
        settings=st.session_state.settings,
    )
    reconciler.load(plan_id=plan_id, record_id=record_id, from_history=record_id is not None)
    st.session_state.reconciler = reconciler


def logout() -> None:
    """Clear authentication and session state."""
    close_screen()
    st.session_state.refresh_signals.reset()
    if st.session_state.credentials:
        revoke_credentials(current_auth().credentials)

    for key in list(st.session_state.keys()):
        del st.session_state[key]

    logger.info("User logged out")
    st.rerun()


def login_page() -> None:
    st.title("🏋️ Workout Tracker")
    st.markdown("Log your workouts and see what you lifted last time.")

    if st.button("🔐 Log in with Google", type="primary"):
        auth_url = get_authorization_url(get_client_config(), get_redirect_uri())
        st.markdown(
            f'<meta http-equiv="refresh" content="0;url={auth_url}">',
            unsafe_allow_html=True
        )

    st.info("ℹ️ Your workouts are stored in a 'WorkoutTracker' folder on your Google Drive.")


def sidebar() -> None:
    repository: WorkoutRepository = st.session_state.repository
    user_id = current_auth().current_user_id()

    with st.sidebar:
        st.write(f"**{(st.session_state.user_info or {}).get('name', user_id)}**")
        if st.button("Log out", use_container_width=True):
            logout()

        st.markdown("### 📋 Plans")
        for plan in repository.fetch_plans_by_user(user_id):
            if st.button(plan.title, key=f"plan-{plan.plan_id}", use_container_width=True):
                st.session_state.creating_plan = False
                open_screen(plan_id=plan.plan_id)
        if st.button("➕ Empty workout", use_container_width=True):
            st.session_state.creating_plan = False
            open_screen()
        if st.button("🆕 New plan", use_container_width=True):
            close_screen()
            st.session_state.creating_plan = True

        st.markdown("### 🕑 History")
        history = repository.fetch_sessions_by_user(user_id, limit=10)
        for record in history:
            label = f"{record.date:%d.%m} {record.title}" + ("" if record.done else " (unfinished)")
            if st.button(label, key=f"record-{record.record_id}", use_container_width=True):
                st.session_state.creating_plan = False
                open_screen(record_id=record.record_id)

        suggestion_panel(user_id, history)


def suggestion_panel(user_id: str, history) -> None:
    service: SuggestionService = st.session_state.suggestions
    st.markdown("### 💡 Suggestions")
    cached = service.get_cached(user_id)
    if cached and not service.signals.suggestions_stale:
        for line in cached:
            st.write(f"- {line}")
    elif service.client is None:
        st.caption("Set GEMINI_API_KEY to get suggestions.")
    elif st.button("Generate suggestions"):
        with st.spinner("Thinking..."):
            for line in service.generate(user_id, history):
                st.write(f"- {line}")


def _hint(value) -> str:
    return "" if value is None else str(value)


def set_row(reconciler: WorkoutSessionReconciler, exercise: WorkingExercise, number: int, working_set: WorkingSet) -> None:
    key = f"{exercise.id}-{working_set.id}"
    cols = st.columns([1, 2, 2, 3, 1])

    if cols[0].button(KIND_LABELS[working_set.kind.value], key=f"kind-{key}"):
        reconciler.toggle_set_kind(exercise.id, working_set.id)
        st.rerun()

    weight = cols[1].text_input(
        f"Weight {number}", value=_hint(working_set.weight),
        placeholder=_hint(working_set.placeholder_weight), key=f"weight-{key}",
    )
    reps = cols[2].text_input(
        f"Reps {number}", value=_hint(working_set.reps),
        placeholder=_hint(working_set.placeholder_reps), key=f"reps-{key}",
    )
    notes = cols[3].text_input(
        f"Notes {number}", value=working_set.notes,
        placeholder=working_set.placeholder_notes or "", key=f"notes-{key}",
    )
    try:
        reconciler.update_set(exercise.id, working_set.id, weight=weight, reps=reps, notes=notes)
    except ValueError as e:
        cols[3].error(str(e))

    if cols[4].button("🗑", key=f"delete-{key}"):
        reconciler.delete_set(exercise.id, working_set.id)
        st.rerun()


def workout_screen(reconciler: WorkoutSessionReconciler) -> None:
    st.title(reconciler.title)
    st.caption(modes.describe(reconciler.mode))

    col1, col2 = st.columns(2)
    if isinstance(reconciler.mode, modes.PlanEditing) and col1.button("▶️ Start Workout", type="primary"):
        reconciler.start_workout()
        st.rerun()
    if isinstance(reconciler.mode, modes.ActiveSession) and col1.button("⏹ End Workout", type="primary"):
        reconciler.end_workout()
        st.rerun()
    shown = modes.editable_start(reconciler.mode)
    if shown is not None:
        picked = col2.time_input("Start time", value=shown.time(), key=f"start-time-{id(reconciler)}")
        new_start = modes.picked_start(reconciler.mode, picked)
        if new_start is not None:
            reconciler.set_start_time(new_start)

    weight = st.text_input("Body weight", value=_hint(reconciler.body_weight), placeholder="Enter weight")
    notes = st.text_area("Notes", value=reconciler.notes, placeholder="Add workout notes...")
    try:
        reconciler.set_body_weight(weight)
    except ValueError as e:
        st.error(str(e))
    reconciler.set_notes(notes)

    if not reconciler.exercises:
        st.info("No exercises yet")
    for exercise in reconciler.exercises:
        with st.expander(exercise.name, expanded=True):
            for number, working_set in enumerate(exercise.sets, start=1):
                set_row(reconciler, exercise, number, working_set)
            c1, c2 = st.columns(2)
            if c1.button("➕ Add set", key=f"add-set-{exercise.id}"):
                reconciler.add_set(exercise.id)
                st.rerun()
            if c2.button("Remove exercise", key=f"remove-{exercise.id}"):
                reconciler.remove_exercise(exercise.id)
                st.rerun()

    query = st.text_input("Add exercise", placeholder="Search exercises...")
    if query:
        options = [ex.name for ex in search(query)] or [query.strip()]
        choice = st.selectbox("Exercise", options)
        if st.button("Add"):
            try:
                reconciler.add_exercise(choice)
                st.rerun()
            except TrackerError as e:
                st.warning(e.user_message)

    if st.button("💾 Save", type="primary"):
        try:
            outcome = reconciler.save()
        except AuthenticationError as e:
            st.error(e.user_message)
            return
        except TrackerError as e:
            logger.error(f"Save failed: {e}", exc_info=True)
            st.error(e.user_message)
            return
        st.success("Saved" if outcome.target != "noop" else "Nothing to save")
        st.session_state.reconciler = None
        st.rerun()

    deletable = isinstance(reconciler.mode, modes.HistoricalEdit) or (
        isinstance(reconciler.mode, modes.PlanEditing) and reconciler.plan is not None
    )
    if deletable:
        with st.expander("Danger zone"):
            what = "workout" if isinstance(reconciler.mode, modes.HistoricalEdit) else "plan"
            confirmed = st.checkbox(f"Yes, delete this {what}", key=f"confirm-delete-{id(reconciler)}")
            if st.button(f"🗑 Delete {what}", disabled=not confirmed):
                try:
                    reconciler.delete()
                except TrackerError as e:
                    logger.error(f"Delete failed: {e}", exc_info=True)
                    st.error(e.user_message)
                    return
                st.session_state.reconciler = None
                st.rerun()


def reset_plan_form() -> None:
    st.session_state.creating_plan = False
    st.session_state.new_plan_exercises = []


def create_plan_page() -> None:
    """Form for a new plan template, or a week of split plans."""
    repository: WorkoutRepository = st.session_state.repository
    user_id = current_auth().current_user_id()
    plans = repository.fetch_plans_by_user(user_id)
    picked = st.session_state.new_plan_exercises

    st.title("🆕 New plan")
    title = st.text_input("Title", placeholder="e.g. Monday - Push")
    workout_type = st.radio("Type", ["custom", "split"], horizontal=True)
    day_of_week = None
    if workout_type == "split":
        days = available_split_days(plans)
        if not days:
            st.warning("Every weekday already has a split plan")
        day_of_week = st.selectbox("Day", days)

    query = st.text_input("Add exercise", placeholder="Search exercises...", key="new-plan-query")
    if query:
        options = [ex.name for ex in search(query)] or [query.strip()]
        choice = st.selectbox("Exercise", options, key="new-plan-choice")
        if st.button("Add"):
            if normalize_name(choice) in {normalize_name(n) for n in picked}:
                st.warning(f"{choice} is already in this plan")
            else:
                picked.append(choice)
                st.rerun()

    for position, name in enumerate(picked):
        c1, c2 = st.columns([5, 1])
        c1.write(f"{position + 1}. {name}")
        if c2.button("✖", key=f"new-plan-remove-{position}"):
            picked.pop(position)
            st.rerun()

    c1, c2 = st.columns(2)
    if c1.button("Create plan", type="primary"):
        try:
            plan = build_plan(user_id, title, picked, workout_type, day_of_week, existing=plans)
            repository.save_plan(plan)
        except ValueError as e:
            st.error(str(e))
            return
        except TrackerError as e:
            st.error(e.user_message)
            return
        reset_plan_form()
        open_screen(plan_id=plan.plan_id)
        st.rerun()
    if c2.button("Cancel"):
        reset_plan_form()
        st.rerun()

    with st.expander("Generate a weekly split"):
        schedule = {
            day: st.text_input(day, value=REST_DAY, key=f"split-{day}")
            for day in DAYS_OF_WEEK
        }
        if st.button("Create split plans"):
            try:
                new_plans = plans_from_schedule(user_id, schedule, existing=plans)
                for plan in new_plans:
                    repository.save_plan(plan)
            except ValueError as e:
                st.error(str(e))
                return
            except TrackerError as e:
                st.error(e.user_message)
                return
            reset_plan_form()
            st.toast(f"Created {len(new_plans)} plans")
            st.rerun()


def main_app() -> None:
    initialize_services()
    sidebar()

    if st.session_state.creating_plan:
        create_plan_page()
        return

    reconciler = st.session_state.reconciler
    if reconciler is None:
        st.title("🏋️ Workout Tracker")
        st.write("Pick a plan or a past workout from the sidebar.")
        return
    workout_screen(reconciler)


def main() -> None:
    """Main app entry point."""
    initialize_session_state()
    handle_oauth_callback()

    if not st.session_state.authenticated:
        login_page()
        return

    try:
        main_app()
    except AuthenticationError as e:
        logger.warning(f"Authentication lost: {e}")
        st.session_state.authenticated = False
        st.error(e.user_message)
    except TrackerError as e:
        logger.error(f"Workout screen error: {e}", exc_info=True)
        st.error(e.user_message)


if __name__ == "__main__":
    main()
