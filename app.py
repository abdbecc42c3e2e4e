# app.py
import pandas as pd
import streamlit as st

from qrrpalib.exceptions import ConfigError
from qrrpalib.io import save_csv_bytes, save_xlsx_bytes
from qrrpalib.ordinances import (
    PROPERTY_CLASSIFICATIONS, PROPERTY_KINDS, PROVINCES_AND_CITIES, OrdinanceStore, coerce_config,
)
from qrrpalib.pipeline import compilation_table, errors_table, review_batch
from qrrpalib.settings import Settings, setup_logging

st.set_page_config(page_title="QRRPA Batch Review (Assessment Levels + Sum Checks)", layout="wide")

settings = Settings.from_env()
setup_logging(settings.log_level)
store = OrdinanceStore(settings.config_dir)

if "ordinance_config" not in st.session_state:
    st.session_state["ordinance_config"] = store.load()

st.title("QRRPA Batch Review")
st.caption("Rules-based checking of Quarterly Reports of Real Property Assessment against the provincial assessment ordinances.")

with st.expander("How to read this dashboard"):
    st.markdown("""
**Purpose.** This is a *screening* tool. It flags QRRPA sheets whose arithmetic or assessment levels need a second look.
It does **not** certify a report. Confirm flagged items against the LGU's tax declarations and the ordinance itself.

**Errors** (−5 points each):
- **Sum mismatches** – classification rows do not add up to row 26, or Land + Building + Machinery + Other do not add up to the row total (RPU exact; Market/Assessed Value ±0.05).
- **Assessment levels** – Assessed Value ÷ Market Value falls outside the ordinance band widened by ±5 points, or the band is not configured.
- **Record checks** – RPU or Market Value totals off, tax total ≠ Basic + SEF, negative values, missing levy rate codes.

**Findings** (−1 point each):
- Market or Assessed Value without an RPU count, RPUs without value, an idle levy rate that needs confirmation.

Score starts at **100** and never goes below 0.
""")

# ---------- Sidebar ----------
st.sidebar.header("Scope")
scope_sel = st.sidebar.selectbox(
    "Province / City scope", ["(auto)"] + PROVINCES_AND_CITIES, index=0,
    help="(auto) detects the scope per file from the Province field, the municipality, or the LGU name.",
)
forced_scope = None if scope_sel == "(auto)" else scope_sel

default_scope = st.sidebar.selectbox(
    "Fallback scope when detection fails", PROVINCES_AND_CITIES,
    index=PROVINCES_AND_CITIES.index(settings.default_scope) if settings.default_scope in PROVINCES_AND_CITIES else 0,
)

st.sidebar.header("Processing")
MAX_PAUSE_MS = 1000
pause_ms = st.sidebar.number_input(
    "Pause between files (ms)", min_value=0, max_value=MAX_PAUSE_MS,
    value=min(settings.batch_pause_ms, MAX_PAUSE_MS), step=10,
    help="Only keeps the page responsive on large batches.",
)

t1, t2 = st.tabs(["Batch Review", "Assessment Levels"])

# ---------- Batch review ----------
with t1:
    uploads = st.file_uploader(
        "Select QRRPA files (.xls, .xlsx, .csv)", type=["xls", "xlsx", "xlsm", "csv"], accept_multiple_files=True,
    )

    if uploads and st.button("Process files", type="primary"):
        bar = st.progress(0.0, text="Starting…")

        def _progress(info):
            bar.progress(info["current"] / max(info["total"], 1), text=info["message"])

        batch = review_batch(
            [(f.name, f.getvalue()) for f in uploads],
            st.session_state["ordinance_config"],
            forced_scope=forced_scope,
            default_scope=default_scope,
            on_progress=_progress,
            pause=pause_ms / 1000.0,
        )
        bar.progress(1.0, text=f"Completed! {len(batch.reviews)} files processed successfully.")
        st.session_state["batch"] = batch

    batch = st.session_state.get("batch")
    if batch:
        table = compilation_table(batch.reviews)

        c1, c2, c3 = st.columns(3)
        c1.metric("Files reviewed", len(batch.reviews))
        c2.metric("Failed to parse", len(batch.errors))
        c3.metric("Mean score", f"{table['Score'].mean():.1f}" if not table.empty else "–")

        st.subheader("Compilation Results")
        show = [c for c in table.columns if c not in ("Findings", "Errors")]
        st.dataframe(table[show], use_container_width=True)

        for review in batch.reviews:
            res = review.result
            with st.expander(f"{review.file_name} · {review.document.meta.lgu_name} · score {res.score}"):
                st.caption(f"Scope: {review.scope} ({review.scope_source}) · Period: {review.document.meta.period}")
                if res.errors:
                    st.write(f"**Errors ({len(res.errors)})**")
                    st.dataframe(pd.DataFrame({"Error": res.errors}), use_container_width=True)
                if res.findings:
                    st.write(f"**Findings ({len(res.findings)})**")
                    st.dataframe(pd.DataFrame({"Finding": res.findings}), use_container_width=True)
                if not res.errors and not res.findings:
                    st.success("No errors or findings. Recommended for approval.")

        if batch.errors:
            st.subheader("Files that could not be read")
            st.dataframe(errors_table(batch.errors), use_container_width=True)

        stamp = pd.Timestamp.now().strftime("%Y-%m-%d")
        d1, d2 = st.columns(2)
        d1.download_button(
            "Export Report (.xlsx)", data=save_xlsx_bytes(table), file_name=f"QRRPA_Report_{stamp}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        d2.download_button(
            "Export Report (.csv)", data=save_csv_bytes(table), file_name=f"QRRPA_Report_{stamp}.csv", mime="text/csv",
        )

# ---------- Ordinance editor ----------
with t2:
    st.subheader("Assessment Level Configuration")
    config = st.session_state["ordinance_config"]

    e1, e2 = st.columns(2)
    sel_scope = e1.selectbox("Province / City Scope", PROVINCES_AND_CITIES, key="cfg_scope")
    sel_kind = e2.selectbox("Property Kind", PROPERTY_KINDS, key="cfg_kind")

    rates = config.get(sel_scope, {}).get(sel_kind, {})
    grid = pd.DataFrame([
        {"Classification": cls, "Min %": rates.get(cls, {}).get("min", 0.0), "Max %": rates.get(cls, {}).get("max", 0.0)}
        for cls in PROPERTY_CLASSIFICATIONS
    ])
    edited = st.data_editor(
        grid, disabled=["Classification"], hide_index=True, use_container_width=True,
        key=f"editor_{sel_scope}_{sel_kind}",
    )

    s1, s2 = st.columns(2)
    if s1.button("Save", type="primary", key="save_levels"):
        updated = {k: dict(v) for k, v in config.items()}
        updated.setdefault(sel_scope, {})
        updated[sel_scope] = {k: dict(v) for k, v in updated[sel_scope].items()}
        updated[sel_scope][sel_kind] = {
            row["Classification"]: {"min": row["Min %"], "max": row["Max %"]} for _, row in edited.iterrows()
        }
        try:
            st.session_state["ordinance_config"] = store.save(coerce_config(updated))
        except ConfigError as e:
            st.error(f"Assessment levels were not saved: {e}")
        else:
            st.success("Assessment levels saved successfully!")
    if s2.button("Reset to defaults"):
        st.session_state["ordinance_config"] = store.reset()
        st.info("Restored the Local Government Code defaults.")

    st.info(
        "These settings are saved locally and applied to every batch review for the selected province or city. "
        "Each band is widened by ±5 points during validation."
    )
