"""
Streamlit Frontend for Smallbooks

The screens a small-business owner uses day to day:
upload a receipt, review what was read, manage transactions,
and see the dashboard.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every extracted value can be corrected before it is trusted
3. Clear error messages in simple language
4. No hidden actions

Authentication is outside this app; the account is chosen in the sidebar.
"""

import asyncio
from datetime import date, datetime, time, timezone
from decimal import Decimal

import streamlit as st

from smallbooks.audit import create_correlation_id
from smallbooks.config import validate_all_settings
from smallbooks.models.transaction import (
    TransactionCategory,
    TransactionKind,
    TransactionStatus,
)
from smallbooks.orchestrator import (
    ReceiptUploadFlow,
    SummaryFlow,
    TransactionFlow,
    create_app_components,
)
from smallbooks.services.ocr import OcrFailure
from smallbooks.services.storage import StorageError
from smallbooks.validation import UploadRejectedError, ValidationFailure


# Page configuration
st.set_page_config(
    page_title="Smallbooks",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return run_async(create_app_components(use_storage=True))


def _label(value) -> str:
    return value.value.replace("_", " ").title()


def _show_validation_failure(error: ValidationFailure):
    st.error("Please fix the following:")
    for issue in error.issues:
        st.markdown(f"- **{issue.field}**: {issue.message}")


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()

    st.sidebar.title("🧾 Smallbooks")
    owner_id = st.sidebar.text_input("Account", value="demo-business").strip()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📤 Upload Receipt", "📒 Transactions", "📊 Dashboard", "⚙️ Settings"],
        index=0,
    )

    if not owner_id:
        st.warning("Enter an account name in the sidebar to continue.")
        st.stop()

    if page == "📤 Upload Receipt":
        render_upload_page(components.upload_flow, components.transaction_flow, owner_id)
    elif page == "📒 Transactions":
        render_transactions_page(components.transaction_flow, owner_id)
    elif page == "📊 Dashboard":
        render_dashboard_page(components.summary_flow, owner_id)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_upload_page(
    upload_flow: ReceiptUploadFlow,
    transaction_flow: TransactionFlow,
    owner_id: str,
):
    """Upload a receipt, then review the pending transaction it produced."""
    st.title("📤 Upload Receipt")
    st.markdown("Upload a photo or PDF of a receipt (max 5 MB).")

    if "pending_record" not in st.session_state:
        st.session_state.pending_record = None
        st.session_state.pending_extraction = None

    uploaded_file = st.file_uploader(
        "Choose a receipt",
        type=["jpg", "jpeg", "png", "webp", "pdf"],
    )

    if uploaded_file and st.button("🔍 Read Receipt", type="primary"):
        with st.spinner("Reading your receipt..."):
            try:
                record, extraction = run_async(upload_flow.upload_receipt(
                    owner_id=owner_id,
                    data=uploaded_file.getvalue(),
                    filename=uploaded_file.name,
                    content_type=uploaded_file.type,
                    correlation_id=create_correlation_id(),
                ))
                st.session_state.pending_record = record
                st.session_state.pending_extraction = extraction
            except UploadRejectedError as e:
                st.error(f"❌ {e}")
            except OcrFailure as e:
                st.warning(
                    f"Could not read this receipt ({e}). "
                    "Please add the transaction by hand on the Transactions page."
                )
            except ValidationFailure as e:
                _show_validation_failure(e)
            except StorageError as e:
                st.error(f"Could not save the receipt: {e}")

    record = st.session_state.pending_record
    extraction = st.session_state.pending_extraction
    if record is None:
        return

    st.markdown("---")
    st.subheader("📋 Review")

    _, message = upload_flow.review(extraction)
    if extraction.needs_review:
        st.warning(message)
    else:
        st.success(message)

    if record.receipt_ref:
        with st.expander("📷 View Receipt"):
            st.markdown(f"[Open original]({record.receipt_ref.retrieval_url})")
    with st.expander("📝 Raw OCR text"):
        st.text(extraction.raw_text)

    with st.form("review_form"):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Vendor / Description *", value=record.description)
            amount = st.number_input(
                "Amount *", min_value=0.0, value=float(record.amount), step=0.01, format="%.2f"
            )
            kind = st.selectbox(
                "Type *",
                options=list(TransactionKind),
                index=list(TransactionKind).index(record.kind),
                format_func=_label,
            )
        with col2:
            category = st.selectbox(
                "Category *",
                options=list(TransactionCategory),
                index=list(TransactionCategory).index(record.category),
                format_func=_label,
            )
            occurred_on = st.date_input("Date *", value=record.occurred_on)
            notes = st.text_area("Notes", value=record.notes or "")

        confirm = st.form_submit_button("✅ Save as Verified", type="primary")
        reject = st.form_submit_button("🗑️ Discard")

    if confirm:
        try:
            run_async(transaction_flow.update(owner_id, record.id, {
                "description": description,
                "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
                "kind": kind,
                "category": category,
                "occurred_at": datetime.combine(occurred_on, time.min, tzinfo=timezone.utc),
                "notes": notes or None,
                "status": TransactionStatus.VERIFIED,
            }))
            st.session_state.pending_record = None
            st.success("Saved!")
        except ValidationFailure as e:
            _show_validation_failure(e)
    elif reject:
        released = run_async(transaction_flow.delete(owner_id, record.id))
        st.session_state.pending_record = None
        if released:
            st.info("Receipt discarded.")
        else:
            st.warning("Transaction removed, but the stored image could not be deleted.")


def render_transactions_page(transaction_flow: TransactionFlow, owner_id: str):
    """List, add, review and delete transactions."""
    st.title("📒 Transactions")

    with st.expander("➕ Add transaction"):
        with st.form("add_form", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                kind = st.selectbox("Type", options=list(TransactionKind), format_func=_label)
                amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
                description = st.text_input("Description")
            with col2:
                category = st.selectbox(
                    "Category", options=list(TransactionCategory), format_func=_label
                )
                occurred_on = st.date_input("Date", value=date.today())
                notes = st.text_input("Notes")
            if st.form_submit_button("Add", type="primary"):
                try:
                    _, result = run_async(transaction_flow.create(owner_id, {
                        "kind": kind,
                        "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
                        "description": description,
                        "category": category,
                        "occurred_at": datetime.combine(occurred_on, time.min, tzinfo=timezone.utc),
                        "notes": notes or None,
                        "status": TransactionStatus.VERIFIED,
                    }))
                    st.success("Transaction added.")
                    for warning in result.warnings:
                        st.warning(warning)
                except ValidationFailure as e:
                    _show_validation_failure(e)

    records = run_async(transaction_flow.list(owner_id))
    if not records:
        st.info("No transactions yet. Upload a receipt or add one above.")
        return

    for record in records:
        header = (
            f"{record.occurred_on} · {_label(record.kind)} · {record.description} · "
            f"{record.amount} · {_label(record.status)}"
        )
        with st.expander(header):
            st.markdown(f"**Category:** {_label(record.category)}")
            if record.notes:
                st.markdown(f"**Notes:** {record.notes}")
            if record.receipt_ref:
                st.markdown(f"[Receipt]({record.receipt_ref.retrieval_url})")

            col1, col2, col3 = st.columns(3)
            if col1.button("✅ Verify", key=f"verify-{record.id}"):
                run_async(transaction_flow.set_status(owner_id, record.id, TransactionStatus.VERIFIED))
                st.rerun()
            if col2.button("🚫 Reject", key=f"reject-{record.id}"):
                run_async(transaction_flow.set_status(owner_id, record.id, TransactionStatus.REJECTED))
                st.rerun()
            if col3.button("🗑️ Delete", key=f"delete-{record.id}"):
                released = run_async(transaction_flow.delete(owner_id, record.id))
                if not released:
                    st.warning("Deleted, but the stored receipt image could not be removed.")
                st.rerun()


def render_dashboard_page(summary_flow: SummaryFlow, owner_id: str):
    """Totals by type and category for a date window."""
    st.title("📊 Dashboard")

    col1, col2 = st.columns(2)
    start_date = col1.date_input("From", value=None)
    end_date = col2.date_input("To", value=None)

    summary = run_async(summary_flow.summarize(owner_id, start_date, end_date))

    m1, m2, m3 = st.columns(3)
    m1.metric("Income", f"{summary.total_income:,.2f}")
    m2.metric("Expenses", f"{summary.total_expense:,.2f}")
    m3.metric("Net", f"{summary.net_position:,.2f}")

    st.markdown("### Expenses by category")
    if summary.by_category:
        st.table([
            {"Category": _label(row.category), "Total": f"{row.total:,.2f}", "Count": row.count}
            for row in summary.by_category
        ])
    else:
        st.info("No expenses in this period.")

    st.markdown("### By type and category")
    rows = [
        {"Type": _label(kind), "Category": _label(category), "Total": f"{t.total:,.2f}", "Count": t.count}
        for kind, categories in summary.by_type_and_category.items()
        for category, t in categories.items()
    ]
    if rows:
        st.table(rows)
    st.caption(f"{summary.record_count} transactions")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")
    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Cloudinary (Receipt Images)", "cloudinary"),
        ("Tesseract (OCR)", "tesseract"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Extraction Keywords", "extraction"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Services that are not configured fall back to in-memory storage, "
        "which is cleared when the app restarts. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
