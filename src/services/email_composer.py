# src/services/email_composer.py

"""HTML bodies for price alerts and weekly summaries."""

from decimal import ROUND_HALF_UP, Decimal
from html import escape

from src.models.price import ZERO, format_price
from src.models.tracked_product import TrackedProduct
from src.services.mailer import EmailMessage

_SUMMARY_TITLE_LIMIT = 50


def savings_percent(old_price: Decimal, new_price: Decimal) -> int:
    """Whole-number percentage saved going from *old* to *new*."""
    if old_price <= 0:
        return 0
    percent = (old_price - new_price) / old_price * 100
    return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compose_price_drop_alert(
    product: TrackedProduct,
    old_price: Decimal,
    new_price: Decimal,
) -> EmailMessage:
    """Alert for a notify-worthy drop on *product*."""
    savings = old_price - new_price
    percent = savings_percent(old_price, new_price)
    title = escape(product.title)

    html = f"""
      <h2>Price Drop Alert!</h2>
      <p>Great news! The price for <strong>"{title}"</strong> has dropped by {percent}%!</p>

      <div style="background: #f5f5f5; padding: 15px; border-radius: 8px; margin: 20px 0;">
        <p><strong>Product:</strong> {title}</p>
        <p><strong>Old Price:</strong> <span style="text-decoration: line-through;">{format_price(old_price)}</span></p>
        <p><strong>New Price:</strong> <span style="color: green; font-size: 18px;">{format_price(new_price)}</span></p>
        <p><strong>Your Savings:</strong> <span style="color: green;">{format_price(savings)} ({percent}%)</span></p>
        <p><strong>Target Price:</strong> {format_price(product.target_price)}</p>
      </div>

      <a href="{escape(product.url)}" style="background: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; display: inline-block;">View Product</a>

      <p style="margin-top: 20px; color: #666; font-size: 12px;">This alert was sent by Price Tracker</p>
    """
    return EmailMessage(
        to=product.user_email,
        subject=f"Price Drop Alert: {product.title} - Save {percent}%!",
        html=html,
    )


def _summary_row(product: TrackedProduct) -> str:
    title = product.title
    if len(title) > _SUMMARY_TITLE_LIMIT:
        title = title[:_SUMMARY_TITLE_LIMIT] + "..."
    if product.below_target:
        status, color = "Below Target", "#28a745"
    else:
        status, color = "Above Target", "#dc3545"
    cell = "padding: 10px; border-bottom: 1px solid #eee;"
    return (
        "<tr>"
        f'<td style="{cell}">{escape(title)}</td>'
        f'<td style="{cell}">{format_price(product.current_price)}</td>'
        f'<td style="{cell}">{format_price(product.target_price)}</td>'
        f'<td style="{cell} color: {color};">{status}</td>'
        "</tr>"
    )


def compose_weekly_summary(
    email: str, products: list[TrackedProduct],
) -> EmailMessage:
    """Weekly digest of every product *email* tracks."""
    below = [p for p in products if p.below_target]
    total_savings = sum((p.potential_savings for p in below), ZERO)
    rows = "\n".join(_summary_row(p) for p in products)

    html = f"""
      <h2>Weekly Price Tracking Summary</h2>
      <p>Your weekly price tracking report is ready!</p>

      <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <h3>Summary</h3>
        <p><strong>Total Products Tracked:</strong> {len(products)}</p>
        <p><strong>Products Below Target:</strong> {len(below)}</p>
        <p><strong>Potential Savings:</strong> <span style="color: #28a745; font-size: 18px;">{format_price(total_savings)}</span></p>
      </div>

      <h3>Product Details</h3>
      <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
        <thead>
          <tr style="background: #e9ecef;">
            <th style="padding: 12px; text-align: left;">Product</th>
            <th style="padding: 12px; text-align: left;">Current Price</th>
            <th style="padding: 12px; text-align: left;">Target Price</th>
            <th style="padding: 12px; text-align: left;">Status</th>
          </tr>
        </thead>
        <tbody>
          {rows}
        </tbody>
      </table>

      <p style="margin-top: 20px; color: #666; font-size: 12px;">This summary was sent by Price Tracker</p>
    """
    return EmailMessage(
        to=email,
        subject=f"Weekly Price Tracking Summary - {len(products)} Products",
        html=html,
    )
