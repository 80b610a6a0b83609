"""
Printable purchase order ("bon de commande") rendered as HTML.
"""
from pathlib import Path
from typing import Optional

from jinja2 import BaseLoader, Environment, FileSystemLoader

from models.company import CompanySettings
from models.supplier_order import SupplierOrder
from orders.totals import format_money

STATUS_LABELS = {
    "draft": "Brouillon",
    "pending": "En attente",
    "confirmed": "Confirmée",
    "shipped": "Expédiée",
    "partially_delivered": "Partiellement livrée",
    "delivered": "Livrée",
    "cancelled": "Annulée",
}

# Default purchase order template
DEFAULT_PURCHASE_ORDER_TEMPLATE = """\
<!DOCTYPE html>
<!--
  Purchase order template. Copy to config/purchase_order.html.j2 to customise.
  Template engine : Jinja2  (https://jinja.palletsprojects.com/)
  Values are HTML-escaped automatically.

  Variables:
    order     : order header, supplier summary and items (each with product)
    supplier  : dict of the supplier row (name, contact, email, phone, address), may be empty
    company   : company settings (company_name, logo_url, address, siret, email, phone)
    status    : human label of order.status
  Filters:
    money     : 12.5 | money(order.currency)  gives "12.50 EUR"
-->
<html lang="fr">
<head>
  <meta charset="utf-8">
  <title>Bon de Commande {{ order.order_number }}</title>
  <style>
    body { font-family: Helvetica, Arial, sans-serif; font-size: 12px; margin: 30px; }
    header { display: flex; justify-content: space-between; margin-bottom: 20px; }
    header img { max-height: 80px; }
    h1 { font-size: 20px; text-align: center; margin: 20px 0; }
    table { width: 100%; border-collapse: collapse; margin: 20px 0; }
    th, td { border-bottom: 1px solid #ccc; padding: 6px; text-align: left; }
    th { background: #f0f0f0; }
    td.num, th.num { text-align: right; }
    .totals { text-align: right; }
    .totals .grand { font-weight: bold; }
    footer { margin-top: 40px; text-align: center; color: #666; font-size: 10px; }
  </style>
</head>
<body>
  <header>
    <div class="company">
      {% if company.logo_url %}<img src="{{ company.logo_url }}" alt="Logo"><br>{% endif %}
      <strong>{{ company.company_name }}</strong><br>
      {% if company.address %}{{ company.address }}<br>{% endif %}
      {% if company.siret %}SIRET: {{ company.siret }}<br>{% endif %}
      {% if company.email %}{{ company.email }}<br>{% endif %}
      {% if company.phone %}{{ company.phone }}{% endif %}
    </div>
    <div class="supplier">
      Fournisseur:<br>
      <strong>{{ supplier.name or (order.supplier.name if order.supplier else '') }}</strong><br>
      {% if supplier.address %}{{ supplier.address }}<br>{% endif %}
      {% if supplier.contact %}Contact: {{ supplier.contact }}<br>{% endif %}
      {% if supplier.email %}Email: {{ supplier.email }}{% endif %}
    </div>
  </header>

  <h1>Bon de Commande N°{{ order.order_number }}</h1>

  <p>
    Date de commande: {{ order.order_date or '' }}<br>
    {% if order.expected_delivery_date %}Livraison prévue: {{ order.expected_delivery_date }}<br>{% endif %}
    Statut: {{ status }}
  </p>

  <table>
    <thead>
      <tr><th>Produit</th><th class="num">Quantité</th><th class="num">Prix unitaire</th><th class="num">Total</th></tr>
    </thead>
    <tbody>
      {% for item in order["items"] %}
      <tr>
        <td>{{ item.product.name if item.product else 'Produit inconnu' }}</td>
        <td class="num">{{ item.quantity }}</td>
        <td class="num">{{ item.unit_price | money(order.currency) }}</td>
        <td class="num">{{ item.total_price | money(order.currency) }}</td>
      </tr>
      {% endfor %}
    </tbody>
  </table>

  {% if order.notes and order.notes.strip() %}
  <section class="notes"><strong>Notes :</strong><p>{{ order.notes }}</p></section>
  {% endif %}

  <div class="totals">
    Sous-total: {{ subtotal | money(order.currency) }}<br>
    Frais de port: {{ order.shipping_cost | money(order.currency) }}<br>
    TVA: {{ order.tax_amount | money(order.currency) }}<br>
    <span class="grand">Total: {{ order.total_amount | money(order.currency) }}</span>
  </div>

  {% if order.payment_terms %}<p>Conditions de paiement: {{ order.payment_terms }}</p>{% endif %}

  <footer>
    {{ company.company_name }}{% if company.siret %} - SIRET: {{ company.siret }}{% endif %}<br>
    {{ company.address or '' }}
  </footer>
</body>
</html>
"""


def _environment(loader) -> Environment:
    env = Environment(loader=loader, autoescape=True, keep_trailing_newline=True)
    env.filters["money"] = format_money
    return env


def render_purchase_order(
    order: SupplierOrder,
    company: CompanySettings,
    supplier: Optional[dict] = None,
    template_file: Optional[Path] = None,
) -> str:
    """
    Render an order as a standalone HTML page using the operator template
    (or the built-in default).

    Args:
        order:          Hydrated order (items with product summaries).
        company:        Letterhead settings.
        supplier:       Full supplier row, for address and contact lines.
        template_file:  Optional path to a custom Jinja2 template.
    """
    if template_file and template_file.exists():
        env = _environment(FileSystemLoader(str(template_file.parent)))
        tmpl = env.get_template(template_file.name)
    else:
        env = _environment(BaseLoader())
        tmpl = env.from_string(DEFAULT_PURCHASE_ORDER_TEMPLATE)
    return tmpl.render(
        order=order.model_dump(),
        supplier=supplier or {},
        company=company.model_dump(),
        status=STATUS_LABELS.get(order.status, order.status),
        subtotal=order.subtotal,
    )
