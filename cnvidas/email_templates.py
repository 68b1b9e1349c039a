"""
MJML Email Templates
All email templates use MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "danger": "#dc2626",
}

LOGO_URL = "https://cnvidas.com.br/logo.png"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="CN Vidas" width="140px" href="{FRONTEND_URL}" padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © CN Vidas. Todos os direitos reservados.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def welcome_email_template(user_name: str) -> str:
    content = f"""
    <mj-text>Olá {escape(user_name)},</mj-text>
    <mj-text>
      Sua conta CN Vidas foi criada. Você já pode agendar teleconsultas,
      acionar o pronto atendimento e aproveitar descontos com nossos parceiros.
    </mj-text>
    """
    return get_base_template(
        title="Bem-vindo à CN Vidas!",
        preview_text="Sua conta foi criada com sucesso",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/dashboard",
        cta_label="Acessar painel",
    )


def emergency_alert_template(doctor_name: str, patient_name: str, appointment_id: int) -> str:
    """Sent to doctors when a patient enters the emergency waiting room"""
    content = f"""
    <mj-text>Dr(a). {escape(doctor_name)},</mj-text>
    <mj-text>
      O paciente <strong>{escape(patient_name)}</strong> solicitou um atendimento de emergência
      e está aguardando na sala de espera.
    </mj-text>
    <mj-text color="{THEME['text_muted']}">Atendimento #{appointment_id}</mj-text>
    """
    return get_base_template(
        title="Paciente aguardando atendimento",
        preview_text="Nova consulta de emergência na fila",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/doctor/emergency",
        cta_label="Abrir sala de espera",
    )


def claim_reviewed_template(
    user_name: str, claim_id: int, status: str, amount_approved: Optional[int], review_notes: Optional[str]
) -> str:
    approved = status == "approved"
    status_label = "aprovado" if approved else "recusado"
    color = THEME["success"] if approved else THEME["danger"]

    amount_section = ""
    if approved and amount_approved is not None:
        amount_section = f"<mj-text>Valor aprovado: <strong>R$ {amount_approved / 100:.2f}</strong></mj-text>"

    notes_section = ""
    if review_notes:
        notes_section = f'<mj-text color="{THEME["text_muted"]}">Observações: {escape(review_notes)}</mj-text>'

    content = f"""
    <mj-text>Olá {escape(user_name)},</mj-text>
    <mj-text>
      Seu sinistro #{claim_id} foi <strong style="color: {color};">{status_label}</strong>.
    </mj-text>
    {amount_section}
    {notes_section}
    """
    return get_base_template(
        title="Atualização do seu sinistro",
        preview_text=f"Seu sinistro foi {status_label}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/claims/{claim_id}",
        cta_label="Ver detalhes",
    )
