"""
Page Rendering Templates

Minimal server-rendered pages. Each function takes data and returns an HTML
string; the pages call the JSON API from small inline scripts.
"""

import json
from html import escape
from typing import Any, Dict, List, Optional

BASE_STYLE = """
body { font-family: system-ui; background: #faf7f2; color: #2d2a26; margin: 0; }
nav { background: #3b2f2f; padding: 12px 20px; display: flex; gap: 20px; align-items: center; }
nav a { color: #f5e9d7; text-decoration: none; font-weight: 600; }
.container { max-width: 900px; margin: 30px auto; padding: 0 20px; }
.card { background: #fff; border-radius: 12px; padding: 20px; margin-bottom: 20px; box-shadow: 0 1px 3px rgba(0,0,0,.1); }
button { background: #8b5e34; color: #fff; border: none; border-radius: 8px; padding: 10px 18px; cursor: pointer; }
.muted { color: #888; font-size: 13px; }
.error { color: #b91c1c; }
pre { white-space: pre-wrap; font-family: inherit; }
table { width: 100%; border-collapse: collapse; }
th, td { padding: 10px; text-align: left; border-bottom: 1px solid #eee; }
"""


def _layout(title: str, body: str, signed_in: bool = True, script: str = "") -> str:
    nav = ""
    if signed_in:
        nav = '''<nav>
<a href="/">Appraise</a>
<a href="/my-valuations">My Valuations</a>
<a href="/buy-tokens">Buy Tokens</a>
<span id="status" class="muted" style="margin-left:auto;color:#f5e9d7"></span>
<a href="/logout">Sign out</a>
</nav>'''
    status_script = '''
fetch('/api/user-status').then(r => r.json()).then(s => {
  const el = document.getElementById('status');
  if (el && s.tokenBalance !== undefined)
    el.textContent = `Free today: ${s.freeValuationsLeft} | Tokens: ${s.tokenBalance}`;
});''' if signed_in else ""

    return f'''<!DOCTYPE html>
<html><head>
<meta charset="utf-8">
<title>{escape(title)} - Antique Appraiser</title>
<style>{BASE_STYLE}</style>
</head><body>
{nav}
<div class="container">
{body}
</div>
<script>{status_script}{script}</script>
</body></html>'''


def render_login_page(error: Optional[str] = None) -> str:
    error_html = f'<p class="error">{escape(error)}</p>' if error else ""
    body = f'''
<div class="card">
<h1>Sign In</h1>
{error_html}
<form method="post" action="/login">
<p><input name="email" type="email" placeholder="Email" required></p>
<p><input name="password" type="password" placeholder="Password" required></p>
<button type="submit">Sign In</button>
</form>
</div>'''
    return _layout("Sign In", body, signed_in=False)


def render_home_page() -> str:
    body = '''
<div class="card">
<h1>Appraise an Antique</h1>
<form id="upload">
<p><input type="file" name="files" accept="image/*" multiple required></p>
<p><select name="language">
<option value="en">English</option><option value="de">Deutsch</option>
<option value="es">Español</option><option value="fr">Français</option>
</select></p>
<label><input type="checkbox" id="detailed"> Detailed valuation ($3)</label>
<p><button type="submit">Upload &amp; Appraise</button></p>
</form>
</div>
<div class="card"><pre id="result" class="muted">Results appear here.</pre></div>'''

    script = '''
const form = document.getElementById('upload');
const out = document.getElementById('result');
form.addEventListener('submit', async (e) => {
  e.preventDefault();
  out.textContent = 'Uploading...';
  const res = await fetch('/api/upload-image', {method: 'POST', body: new FormData(form)});
  const data = await res.json();
  if (!res.ok) { out.textContent = data.error; return; }
  out.textContent = data.description + '\\n\\n' + data.remarks;
  const save = await fetch('/api/create-valuation', {
    method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({
      title: data.description.split('\\n')[0].slice(0, 100),
      fullDescription: data.description, assistantResponse: data.remarks,
      images: data.images || [], isDetailed: document.getElementById('detailed').checked,
    }),
  });
  const saved = await save.json();
  if (saved.status === 'payment_required') window.location = saved.url;
  else if (saved.status === 'tokens_required') window.location = '/buy-tokens';
});'''
    return _layout("Appraise", body, script=script)


def render_buy_tokens_page(packages: Dict[int, int]) -> str:
    buttons = "".join(
        f'<button onclick="buy({amount})">{amount} tokens - ${cents / 100:.2f}</button> '
        for amount, cents in sorted(packages.items())
    )
    body = f'''
<div class="card">
<h1>Buy Tokens</h1>
<p>One token pays for one valuation after your free daily valuation.</p>
{buttons}
<p id="error" class="error"></p>
</div>'''
    script = '''
async function buy(amount) {
  const res = await fetch('/api/buy-tokens', {
    method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({amount}),
  });
  const data = await res.json();
  if (res.ok && data.url) window.location = data.url;
  else document.getElementById('error').textContent = data.error || 'Checkout failed';
}'''
    return _layout("Buy Tokens", body, script=script)


def render_payment_success_page(title: str, session_id: Optional[str]) -> str:
    # JSON string literal, safe inside <script>
    sid = json.dumps(session_id or "").replace("<", "\\u003c")
    body = f'''
<div class="card">
<h1>{escape(title)}</h1>
<p id="message" class="muted">Verifying your payment...</p>
<a href="/">Back to appraisals</a>
</div>'''
    script = f'''
const sid = {sid};
fetch('/api/verify-payment?session_id=' + encodeURIComponent(sid))
  .then(r => r.json())
  .then(d => document.getElementById('message').textContent = d.message || d.error);'''
    return _layout(title, body, script=script)


def render_valuations_page(valuations: List[Dict[str, Any]], page: int, total_pages: int) -> str:
    rows = ""
    for v in valuations:
        created = (v.get("created_at") or "")[:19].replace("T", " ")
        kind = "Detailed" if v.get("is_detailed") else "Standard"
        pending = ' <span class="muted">(awaiting payment)</span>' if v.get("payment_status") == "pending" else ""
        rows += f'''
<tr>
<td><a href="/my-valuations/{escape(v["id"])}">{escape(v.get("title") or "")}</a>{pending}</td>
<td>{kind}</td>
<td class="muted">{created}</td>
</tr>'''

    if not rows:
        rows = '<tr><td colspan="3" class="muted">No valuations yet.</td></tr>'

    pager = ""
    if page > 1:
        pager += f'<a href="/my-valuations?page={page - 1}">&larr; Newer</a> '
    if page < total_pages:
        pager += f'<a href="/my-valuations?page={page + 1}">Older &rarr;</a>'

    body = f'''
<div class="card">
<h1>My Valuations</h1>
<table>
<tr><th>Title</th><th>Type</th><th>Created</th></tr>
{rows}
</table>
<p>{pager}</p>
</div>'''
    return _layout("My Valuations", body)


def render_valuation_detail_page(valuation: Dict[str, Any]) -> str:
    images = "".join(
        f'<img src="{escape(url)}" style="max-width:200px;margin:5px;border-radius:8px">'
        for url in valuation.get("images") or []
    )
    sections = ""
    for label, key in (
        ("Summary", "summary"),
        ("Description", "full_description"),
        ("Assessment", "assistant_response"),
        ("Your comment", "user_comment"),
        ("Updated report", "assistant_follow_up"),
    ):
        if valuation.get(key):
            sections += f'<h3>{label}</h3><pre>{escape(valuation[key])}</pre>'

    body = f'''
<div class="card">
<a href="/my-valuations">&larr; All valuations</a>
<h1>{escape(valuation.get("title") or "")}</h1>
<p class="muted">{escape((valuation.get("created_at") or "")[:19].replace("T", " "))}</p>
<div>{images}</div>
{sections}
</div>'''
    return _layout(valuation.get("title") or "Valuation", body)
