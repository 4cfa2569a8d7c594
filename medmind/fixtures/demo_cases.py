from __future__ import annotations

from dataclasses import dataclass

SIMULATED_IMAGE_NAME = "simulated_scan.jpg"


@dataclass(frozen=True)
class DemoCase:
    id: str
    label: str
    symptoms: str
    report: str
    image_label: str
    context: str
    image_name: str = SIMULATED_IMAGE_NAME


DEMO_CASES: tuple[DemoCase, ...] = (
    DemoCase(
        id="pneumonia",
        label="Pneumonia",
        symptoms=(
            "Patient (45M) presents with high fever (39.2°C), productive cough with rust-colored sputum, "
            "and sharp pleuritic chest pain on the right side. Symptoms started abruptly 2 days ago. "
            "Chills and rigor reported."
        ),
        report=(
            "Vitals: HR 105 bpm, BP 130/85, RR 26/min, O2 Sat 91% on room air.\n"
            "Ausculation: Crackles heard in the right lower lung field."
        ),
        image_label="Chest X-Ray: RLL Consolidation",
        context=(
            "SIMULATION: Analyze this case as if the image provided is a Chest X-Ray showing clear "
            "Right Lower Lobe (RLL) consolidation and air bronchograms consistent with bacterial pneumonia."
        ),
    ),
    DemoCase(
        id="anemia",
        label="Severe Anemia",
        symptoms=(
            "Patient (32F) reports progressive fatigue, weakness, and dizziness upon standing over the "
            "past 3 months. Notes heavier than usual menstrual periods and craving for ice (pagophagia)."
        ),
        report=(
            "LAB RESULTS:\nHemoglobin: 8.2 g/dL (Low)\nMCV: 72 fL (Low)\nFerritin: 10 ng/mL (Low)\n"
            "TIBC: 450 mcg/dL (High)\nPeripheral Smear: Hypochromic microcytic red cells observed."
        ),
        image_label="Peripheral Blood Smear",
        context=(
            "SIMULATION: Analyze this case as a classic presentation of Iron Deficiency Anemia. "
            "Treat the image as a blood smear showing hypochromia and microcytosis."
        ),
    ),
    DemoCase(
        id="acl",
        label="ACL Tear",
        symptoms=(
            'Athlete (24M) felt a "pop" in the left knee while cutting direction during soccer. '
            'Immediate swelling and inability to bear weight. Knee feels unstable ("giving way").'
        ),
        report=(
            "Physical Exam:\n+ Lachman Test\n+ Anterior Drawer Test\n"
            "Minimal range of motion due to effusion."
        ),
        image_label="MRI Left Knee (T2 Sagittal)",
        context=(
            "SIMULATION: Analyze this case as an Anterior Cruciate Ligament (ACL) tear. Treat the image "
            "as a T2-weighted MRI sequence showing discontinuity of the ACL fibers and bone bruising."
        ),
    ),
    DemoCase(
        id="skin",
        label="Melanoma",
        symptoms=(
            "Patient (55M) noticed a mole on the upper back has changed shape and color over the last "
            "6 months. Reports occasional itching but no bleeding."
        ),
        report="Dermatoscopy report pending. Family history of skin cancer.",
        image_label="Dermatoscopy: Asymmetric Lesion",
        context=(
            "SIMULATION: Analyze this case as a potential Malignant Melanoma. Treat the image as a skin "
            "lesion showing Asymmetry, Irregular Borders, Color variation, and Diameter > 6mm "
            "(ABCD criteria)."
        ),
    ),
)


def get_demo_case(case_id: str) -> DemoCase | None:
    target = (case_id or "").strip().lower()
    if not target:
        return None
    for item in DEMO_CASES:
        if item.id == target:
            return item
    return None
