"""
Landing page served at GET /.

The inline script collects a payload for the active telemetry profile and
POSTs it to /api/telemetry. When consent is required, nothing is collected
until the visitor clicks the consent button.
"""

from html import escape

from schemas import TelemetryProfile

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>__TITLE__</title>
  <style>
    body { font-family: system-ui, sans-serif; margin: 3rem auto; max-width: 40rem; padding: 0 1rem; }
    #consent-banner { display: none; margin-top: 1.5rem; }
    #consent-banner.active { display: block; }
    #status { color: #555; }
  </style>
</head>
<body>
  <h1>__TITLE__</h1>
  <p>This page records a snapshot of your device characteristics. Your IP address is stored only as a salted hash.</p>
  <p id="status">Pending</p>
  <div id="consent-banner">
    <button id="consent-button" type="button">Allow secure collection</button>
  </div>
  <script>
    (function () {
      const consentRequired = __CONSENT__;
      const profile = "__PROFILE__";
      const statusEl = document.getElementById("status");
      const banner = document.getElementById("consent-banner");
      const activity = [];

      function note(message) {
        activity.push({ timestamp: new Date().toISOString(), message: message });
        statusEl.textContent = message;
      }

      function compact(obj) {
        const out = {};
        Object.keys(obj).forEach(function (key) {
          const value = obj[key];
          if (value !== undefined && value !== null && value !== "") out[key] = value;
        });
        return out;
      }

      function storedId(storage, key) {
        let value = null;
        try { value = storage.getItem(key); } catch (e) {}
        if (!value) {
          value = crypto.randomUUID ? crypto.randomUUID() : String(Date.now()) + Math.random();
          try { storage.setItem(key, value); } catch (e) {}
        }
        return value;
      }

      async function digest(text) {
        const data = new TextEncoder().encode(text);
        const hash = await crypto.subtle.digest("SHA-256", data);
        return Array.from(new Uint8Array(hash)).map(function (b) { return b.toString(16).padStart(2, "0"); }).join("");
      }

      function minimalPayload(consent) {
        return compact({
          screen: compact({ width: screen.width, height: screen.height, colorDepth: screen.colorDepth }),
          timezone: Intl.DateTimeFormat().resolvedOptions().timeZone,
          platform: navigator.platform,
          language: navigator.language,
          languages: navigator.languages ? navigator.languages.slice(0, 32) : undefined,
          consentGranted: consent
        });
      }

      async function richPayload(consent) {
        const nav = navigator;
        const conn = nav.connection || {};
        const fingerprintSource = [nav.userAgent, nav.language, screen.width, screen.height, screen.colorDepth].join("|");
        const navigatorSource = [nav.platform, nav.hardwareConcurrency, nav.deviceMemory, nav.maxTouchPoints].join("|");
        let storageEstimate;
        if (nav.storage && nav.storage.estimate) {
          try {
            const est = await nav.storage.estimate();
            storageEstimate = compact({ quota: est.quota, usage: est.usage });
          } catch (e) {}
        }
        return compact({
          identifiers: {
            sessionId: storedId(sessionStorage, "dl-session"),
            visitorId: storedId(localStorage, "dl-visitor"),
            deviceFingerprint: await digest(fingerprintSource),
            navigatorFingerprint: await digest(navigatorSource)
          },
          system: compact({
            platform: nav.platform,
            hardwareConcurrency: nav.hardwareConcurrency,
            deviceMemory: nav.deviceMemory,
            userAgent: nav.userAgent,
            localTime: new Date().toString().slice(0, 128),
            language: nav.language,
            languages: nav.languages ? nav.languages.slice(0, 32) : undefined
          }),
          network: compact({
            effectiveType: conn.effectiveType,
            downlink: conn.downlink,
            rtt: conn.rtt,
            saveData: conn.saveData
          }),
          hardware: compact({
            screen: compact({ width: screen.width, height: screen.height, colorDepth: screen.colorDepth, pixelDepth: screen.pixelDepth }),
            viewport: { width: window.innerWidth, height: window.innerHeight },
            pixelRatio: window.devicePixelRatio,
            touchSupport: {
              maxTouchPoints: Math.min(nav.maxTouchPoints || 0, 100),
              touchEvent: "ontouchstart" in window,
              pointerEvent: "onpointerdown" in window
            }
          }),
          features: compact({
            cookiesEnabled: nav.cookieEnabled,
            javaScriptEnabled: true,
            serviceWorkerStatus: "serviceWorker" in nav ? "supported" : "unsupported",
            mediaDevices: !!nav.mediaDevices,
            storageEstimate: storageEstimate
          }),
          activityLog: activity.slice(-256),
          consentGranted: consent
        });
      }

      async function collect(consent) {
        note("Collecting device details");
        const payload = profile === "minimal" ? minimalPayload(consent) : await richPayload(consent);
        try {
          await fetch("/api/telemetry", {
            method: "POST",
            headers: { "Content-Type": "application/json" },
            body: JSON.stringify(payload),
            keepalive: true
          });
          note("Telemetry sent");
        } catch (e) {
          note("Telemetry failed");
        }
      }

      if (consentRequired) {
        banner.classList.add("active");
        document.getElementById("consent-button").addEventListener("click", function () {
          banner.classList.remove("active");
          collect(true);
        });
      } else {
        collect(true);
      }
    })();
  </script>
</body>
</html>
"""


def render_landing_page(
    consent_required: bool,
    profile: TelemetryProfile = TelemetryProfile.RICH,
    title: str = "Device Info Collector"
) -> str:
    return (
        _PAGE.replace("__TITLE__", escape(title))
        .replace("__CONSENT__", "true" if consent_required else "false")
        .replace("__PROFILE__", TelemetryProfile(profile).value)
    )
