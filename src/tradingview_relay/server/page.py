"""HTML for the live log viewer served at ``/``."""

LOG_VIEWER_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>TradingView Relay - Live Logs</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <style>
    body { font-family: Monaco, Consolas, monospace; background: #0d1117; color: #c9d1d9;
           margin: 0; padding: 20px; }
    h1 { color: #58a6ff; font-size: 24px; }
    .stats { display: flex; gap: 20px; margin-bottom: 20px; flex-wrap: wrap; }
    .stat { background: #161b22; padding: 15px 20px; border-radius: 8px;
            border: 1px solid #30363d; }
    .stat-value { font-size: 24px; color: #58a6ff; font-weight: bold; }
    .stat-label { color: #8b949e; font-size: 12px; }
    .logs { background: #161b22; border-radius: 8px; border: 1px solid #30363d; }
    .log-item { padding: 12px 15px; border-bottom: 1px solid #21262d; }
    .log-time { color: #8b949e; font-size: 12px; }
    .log-type { padding: 2px 8px; border-radius: 4px; font-size: 11px; margin-left: 10px; }
    .REQUEST { background: #1f6feb; } .WEBHOOK { background: #238636; }
    .ERROR { background: #da3633; } .TELEGRAM { background: #8957e5; }
    .log-body { margin-top: 8px; background: #0d1117; padding: 10px; font-size: 12px;
                word-break: break-all; }
    .empty { padding: 40px; text-align: center; color: #8b949e; }
  </style>
</head>
<body>
  <h1>📡 TradingView Relay - Live Logs</h1>
  <div class="stats">
    <div class="stat"><div class="stat-value" id="total">0</div>
      <div class="stat-label">Total Entries</div></div>
    <div class="stat"><div class="stat-value" id="webhooks">0</div>
      <div class="stat-label">Webhooks</div></div>
    <div class="stat"><div class="stat-value" id="telegram">0</div>
      <div class="stat-label">Telegram Sent</div></div>
  </div>
  <div class="logs" id="logs"><div class="empty">Loading logs...</div></div>
  <script>
    function escapeHtml(s) {
      return String(s).replace(/[&<>"']/g, c => ({
        '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
      })[c]);
    }
    async function fetchLogs() {
      const res = await fetch('/logs');
      const data = await res.json();
      document.getElementById('total').textContent = data.total;
      document.getElementById('webhooks').textContent =
        data.logs.filter(l => l.type === 'WEBHOOK').length;
      document.getElementById('telegram').textContent =
        data.logs.filter(l => l.type === 'TELEGRAM').length;
      const list = document.getElementById('logs');
      if (data.logs.length === 0) {
        list.innerHTML = '<div class="empty">No requests yet. Waiting for alerts...</div>';
        return;
      }
      list.innerHTML = data.logs.map(log => `
        <div class="log-item">
          <span class="log-time">${new Date(log.timestamp).toLocaleString()}</span>
          <span class="log-type ${log.type}">${log.type}</span>
          <strong>${escapeHtml(log.method || '')} ${escapeHtml(log.path || '')}</strong>
          ${log.body ? `<div class="log-body">${escapeHtml(log.body)}</div>` : ''}
          ${log.message ? `<div class="log-body">${escapeHtml(log.message)}</div>` : ''}
        </div>`).join('');
    }
    fetchLogs();
    setInterval(fetchLogs, 3000);
  </script>
</body>
</html>
"""
