"""
HTML pages for the browser UI.

Static strings built once at import and never mutated.
"""

import html
import json

BASE_STYLE = r"""
        <style>
            @import url('https://fonts.googleapis.com/css2?family=Press+Start+2P&display=swap');

            * {
                margin: 0;
                padding: 0;
                box-sizing: border-box;
            }

            body {
                font-family: 'Press Start 2P', cursive;
                background: #1a4d2e;
                min-height: 100vh;
                padding: 20px;
                color: #9eff6f;
                text-shadow: 2px 2px 0px rgba(0, 0, 0, 0.5);
                font-size: 12px;
                line-height: 1.8;
            }

            .container {
                background: #2d5a3d;
                border: 8px solid #9eff6f;
                box-shadow: inset 0 0 0 4px #4a7c59;
                max-width: 900px;
                margin: auto;
                padding: 24px;
            }

            h1 {
                font-size: 16px;
                letter-spacing: 3px;
                margin-bottom: 20px;
            }

            input, textarea, select {
                width: 100%;
                padding: 10px;
                margin-bottom: 12px;
                border: 4px solid #9eff6f;
                background: #1a4d2e;
                color: #9eff6f;
                font-family: 'Courier Prime', monospace;
                font-size: 14px;
            }

            textarea {
                min-height: 200px;
            }

            button {
                padding: 10px 18px;
                border: 4px solid #9eff6f;
                background: #1a4d2e;
                color: #9eff6f;
                font-family: 'Press Start 2P', cursive;
                font-size: 11px;
                cursor: pointer;
                text-transform: uppercase;
                margin: 0 8px 12px 0;
            }

            button:hover {
                background: #9eff6f;
                color: #1a4d2e;
            }

            .error {
                border: 4px solid #ff6f6f;
                color: #ff6f6f;
                padding: 10px;
                margin-bottom: 12px;
            }

            table {
                width: 100%;
                border-collapse: collapse;
                font-family: 'Courier Prime', monospace;
                font-size: 13px;
            }

            td, th {
                border: 2px solid #4a7c59;
                padding: 6px;
                text-align: left;
                word-break: break-all;
            }

            .dead {
                opacity: 0.5;
            }
        </style>
"""

LOGIN_PAGE = """<!DOCTYPE html>
<html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>CLIPLINK - Login</title>
""" + BASE_STYLE + """
    </head>
    <body>
        <div class="container">
            <h1>C:\\CLIPLINK&gt; LOGIN_</h1>
            <form method="post" action="/login">
                <input type="text" name="username" placeholder="USERNAME" autocomplete="username" />
                <input type="password" name="password" placeholder="PASSWORD" autocomplete="current-password" />
                <button type="submit">Connect</button>
            </form>
        </div>
    </body>
</html>
"""

ADMIN_PAGE = """<!DOCTYPE html>
<html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>CLIPLINK - Clipboard</title>
        <link rel="manifest" href="/manifest.json">
""" + BASE_STYLE + r"""
    </head>
    <body>
        <div class="container">
            <h1>C:\CLIPLINK&gt;_ <a href="/logout" style="float: right; color: #9eff6f;">LOGOUT</a></h1>

            <textarea id="content" placeholder="Clipboard content"></textarea>
            <button onclick="saveClipboard()">Save</button>
            <button onclick="readClipboard()">Read</button>

            <h1>SHARE</h1>
            <input type="number" id="maxViews" min="0" placeholder="Max views (empty = unlimited)" />
            <input type="number" id="validMinutes" min="0" placeholder="Valid minutes (empty = forever)" />
            <input type="text" id="customId" placeholder="Custom id (optional)" />
            <input type="text" id="sharePassword" placeholder="Password (optional)" />
            <button onclick="createShare()">Create link</button>
            <div id="shareResult"></div>

            <h1>LINKS</h1>
            <table>
                <thead>
                    <tr><th>Link</th><th>Views</th><th>Expires</th><th>Password</th><th></th></tr>
                </thead>
                <tbody id="shareList"></tbody>
            </table>
        </div>

        <script>
            function escapeHtml(text) {
                const map = {'&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#039;'};
                return String(text).replace(/[&<>"']/g, m => map[m]);
            }

            function numberOrNull(id) {
                const value = document.getElementById(id).value.trim();
                return value ? parseInt(value, 10) : null;
            }

            async function saveClipboard() {
                const response = await fetch('/save', {method: 'POST', body: document.getElementById('content').value});
                alert(await response.text());
            }

            async function readClipboard() {
                const response = await fetch('/read');
                if (response.ok) {
                    document.getElementById('content').value = await response.text();
                } else {
                    alert('Clipboard is empty');
                }
            }

            async function createShare() {
                const body = {
                    maxViews: numberOrNull('maxViews'),
                    validMinutes: numberOrNull('validMinutes'),
                };
                const customId = document.getElementById('customId').value.trim();
                const password = document.getElementById('sharePassword').value;
                if (customId) body.customId = customId;
                if (password) body.password = password;

                const response = await fetch('/share', {
                    method: 'POST',
                    headers: {'Content-Type': 'application/json'},
                    body: JSON.stringify(body),
                });
                const data = await response.json();
                const result = document.getElementById('shareResult');
                if (response.ok) {
                    result.innerHTML = `<a href="${escapeHtml(data.shareUrl)}" target="_blank">${escapeHtml(data.shareUrl)}</a>`;
                    loadShareList();
                } else {
                    result.innerHTML = `<div class="error">${escapeHtml(data.detail)}</div>`;
                }
            }

            function formatTimestamp(timestamp) {
                return timestamp ? new Date(timestamp).toLocaleString() : 'never';
            }

            async function loadShareList() {
                const response = await fetch('/api/shares');
                if (!response.ok) return;
                const shares = await response.json();
                shares.sort((a, b) => (b.createdAt || 0) - (a.createdAt || 0));
                const now = Date.now();
                document.getElementById('shareList').innerHTML = shares.map(share => {
                    const dead = (share.expireAt && now > share.expireAt) ||
                                 (share.maxViews && share.views >= share.maxViews);
                    const password = share.password
                        ? `<span onclick="this.textContent = ${escapeHtml(JSON.stringify(share.password))}">[show]</span>`
                        : '';
                    return `<tr class="${dead ? 'dead' : ''}">
                        <td><a href="${escapeHtml(share.url)}" target="_blank">${escapeHtml(share.id)}</a></td>
                        <td>${share.views} / ${share.maxViews || '&infin;'}</td>
                        <td>${formatTimestamp(share.expireAt)}</td>
                        <td>${password}</td>
                        <td>
                            <button onclick="editShare(${escapeHtml(JSON.stringify(share.id))})">Edit</button>
                            <button onclick="deleteShare(${escapeHtml(JSON.stringify(share.id))})">Delete</button>
                        </td>
                    </tr>`;
                }).join('');
            }

            async function editShare(id) {
                const maxViews = prompt('Max views (empty = unlimited)', '');
                if (maxViews === null) return;
                const validMinutes = prompt('Valid minutes from now (empty = forever)', '');
                if (validMinutes === null) return;
                await fetch('/api/shares/' + encodeURIComponent(id), {
                    method: 'PUT',
                    headers: {'Content-Type': 'application/json'},
                    body: JSON.stringify({maxViews: maxViews || null, validMinutes: validMinutes || null}),
                });
                loadShareList();
            }

            async function deleteShare(id) {
                if (!confirm('Delete this link?')) return;
                await fetch('/api/shares/' + encodeURIComponent(id), {method: 'DELETE'});
                loadShareList();
            }

            document.addEventListener('DOMContentLoaded', loadShareList);
        </script>
    </body>
</html>
"""

MANIFEST = json.dumps({
    "name": "CLIPLINK Clipboard",
    "short_name": "Cliplink",
    "start_url": "/",
    "display": "standalone",
    "background_color": "#1a4d2e",
    "theme_color": "#1a4d2e",
})


def get_password_page(error: str = "") -> str:
    """Password prompt for a protected share; the form posts back to the same link"""
    error_block = f'<div class="error">{html.escape(error)}</div>' if error else ""
    return """<!DOCTYPE html>
<html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>CLIPLINK - Protected link</title>
""" + BASE_STYLE + f"""
    </head>
    <body>
        <div class="container">
            <h1>C:\\CLIPLINK&gt; PASSWORD_</h1>
            {error_block}
            <form method="post">
                <input type="password" name="password" placeholder="PASSWORD" autofocus />
                <button type="submit">Open</button>
            </form>
        </div>
    </body>
</html>
"""
