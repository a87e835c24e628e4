"""Built-in explanations for a closed vocabulary of phone technology terms.

Checked before any generation call so common questions always get vetted text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from .utils import normalize_text


@dataclass(frozen=True)
class Explanation:
    key: str
    pattern: "re.Pattern[str]"
    text: str


EXPLANATIONS: List[Explanation] = [
    Explanation(
        "ir_blaster",
        re.compile(r"\b(ir blaster|infrared blaster|ir emitter)\b"),
        """**IR Blaster (Infrared Blaster)**

An IR blaster lets your phone work as a universal remote for TVs, air conditioners, set-top boxes and other appliances that take infrared commands.

**How it works:**
- Emits infrared light pulses that are invisible to the eye
- Reproduces the codes a normal remote would send
- Works with any appliance that has an IR receiver

**Practical use:**
- One remote app for every appliance at home
- Handy when the original remote is lost
- Usually driven by apps such as Mi Remote

**Availability:**
Less common than it used to be; Xiaomi, Redmi and POCO phones still ship with it most often.""",
    ),
    Explanation(
        "ois",
        re.compile(r"\b(ois|optical image stabili[sz]ation)\b"),
        """**OIS (Optical Image Stabilization)**

OIS uses tiny motors to physically shift the lens or sensor and cancel out hand shake while you shoot.

**How it works:**
- Gyroscopes detect movement
- Motors move the lens in the opposite direction in real time
- The sensor sees a steadier image

**Benefits:**
- Sharper low-light photos with longer exposures
- Smoother handheld video
- Especially useful for zoomed shots

**What to look for:**
Look for "OIS" on the main camera in the spec sheet. It makes a visible difference and is common from the mid-range upward.""",
    ),
    Explanation(
        "eis",
        re.compile(r"\b(eis|electronic image stabili[sz]ation)\b"),
        """**EIS (Electronic Image Stabilization)**

EIS is a software technique that crops and shifts each video frame to compensate for camera shake.

**How it works:**
- Software analyses motion between frames
- Each frame is cropped and re-aligned digitally
- The result is smoother footage without extra hardware

**OIS vs EIS:**
- OIS is hardware, EIS is software
- OIS helps both photos and video, EIS mainly helps video
- OIS usually gives better results, and many phones combine both""",
    ),
    Explanation(
        "refresh_rate",
        re.compile(r"\b(refresh rate|\d{2,3}\s?hz|hz)\b"),
        """**Refresh Rate**

Refresh rate, measured in Hz, is how many times per second the screen redraws the image.

**Common rates:**
- 60Hz: standard
- 90Hz: noticeably smoother
- 120Hz: very smooth, common on mid-range phones today
- 144Hz: gaming phones

**Benefits of a higher rate:**
- Smoother scrolling and animations
- More responsive touch
- Better gaming experience

**Trade-off:**
Higher rates use more battery, which is why many phones switch rates adaptively.""",
    ),
    Explanation(
        "processor",
        re.compile(r"\b(processor|cpu|chipset|soc|snapdragon|mediatek|dimensity|cores?)\b"),
        """**Mobile Processor (Chipset)**

The processor is the phone's brain: it runs apps, the camera pipeline and on-device AI.

**Key factors:**
- **Vendor:** Snapdragon, MediaTek Dimensity, Apple A-series, Exynos, Tensor
- **Cores:** most phones use 8 cores split between fast and efficient ones
- **Generation:** newer chips are faster and more power-efficient

**Impact on daily use:**
- App launch speed and multitasking
- Gaming frame rates
- Battery efficiency and camera processing

**What to look for:**
Mid-range chips are plenty for everyday use; pick a flagship-class chip for heavy gaming.""",
    ),
    Explanation(
        "ram",
        re.compile(r"\b(ram|random access memory)\b"),
        """**RAM (Random Access Memory)**

RAM is short-term working memory that keeps open apps ready to use.

**Common amounts:**
- 4GB: basic use
- 6GB: moderate multitasking
- 8GB: comfortable multitasking
- 12GB and above: heavy multitasking and gaming

**RAM vs Storage:**
- RAM is temporary and cleared on restart
- Storage keeps your files permanently
- RAM cannot be upgraded after purchase""",
    ),
    Explanation(
        "storage",
        re.compile(r"\b(storage|internal memory|rom)\b"),
        """**Internal Storage**

Internal storage is the permanent space for apps, photos, videos and files.

**Common amounts:**
- 64GB: fills up quickly
- 128GB: comfortable for most users
- 256GB: good for heavy photo and video users
- 512GB and above: for people who keep everything offline

**Tips:**
- Check for microSD support if you want expandable storage
- The system itself takes 10 to 20GB
- Storage cannot be upgraded later except through a memory card""",
    ),
    Explanation(
        "5g",
        re.compile(r"\b(5g|5 g)\b"),
        """**5G Connectivity**

5G is the fifth generation of mobile networks, with much higher speeds and lower latency than 4G.

**Key benefits:**
- Many times faster downloads and uploads
- Lower latency for gaming and video calls
- Better performance in crowded areas

**Considerations:**
- Needs 5G coverage where you live
- Slightly higher battery drain
- Standard on most mid-range and flagship phones now""",
    ),
    Explanation(
        "nfc",
        re.compile(r"\b(nfc|near field communication)\b"),
        """**NFC (Near Field Communication)**

NFC is a very short-range wireless link, a few centimetres, between your phone and a terminal, tag or accessory.

**Common uses:**
- Tap-to-pay contactless payments
- Pairing earbuds and speakers with one tap
- Reading smart tags and transit cards

**Availability:**
Common on flagship and many mid-range phones. Essential if you plan to pay with your phone.""",
    ),
    Explanation(
        "fast_charging",
        re.compile(r"\b(fast|quick|turbo|warp|super)\s?charg\w*\b"),
        """**Fast Charging**

Fast charging delivers more power, measured in watts, so the battery fills much quicker than with a standard charger.

**Common levels:**
- 18W: basic fast charging
- 25W to 33W: standard fast charging
- 65W to 100W: super fast charging
- 120W and above: ultra fast charging

**Typical 0 to 100% times:**
- 18W: 1.5 to 2 hours
- 33W: about 1 hour
- 65W and above: 30 to 45 minutes

**Note:**
Check whether the fast charger is included in the box.""",
    ),
    Explanation(
        "battery",
        re.compile(r"\b(battery|batteries|mah|\d{4}\s?mah)\b"),
        """**Battery Capacity (mAh)**

Battery capacity, measured in mAh (milliampere-hours), is how much charge the battery can store.

**Common capacities:**
- 4000 to 5000mAh: a day of moderate use
- 5000 to 6000mAh: one and a half to two days
- 6000mAh and above: two days or more

**What affects battery life:**
- Screen size, brightness and refresh rate
- Processor efficiency
- 5G use and gaming

**Real-world expectation:**
5000mAh typically covers a full day of heavy use, and software optimisation matters as much as capacity.""",
    ),
    Explanation(
        "megapixels",
        re.compile(r"\b(megapixels?|mp camera|\d{1,3}\s?mp)\b"),
        """**Camera Megapixels (MP)**

Megapixels measure the resolution of a camera: how many millions of pixels each photo contains.

**Common ranges:**
- 12 to 16MP: plenty for most people
- 48 to 50MP: more room to crop and zoom
- 64 to 200MP: very high resolution, mostly a headline number

**Important truth:**
More megapixels do not automatically mean better photos. Sensor size, lens quality, OIS and image processing matter more.""",
    ),
    Explanation(
        "display_type",
        re.compile(r"\b(amoled|oled|lcd|ips|display type|panel type)\b"),
        """**Display Types: AMOLED vs LCD**

**AMOLED:**
- Each pixel makes its own light
- True blacks and high contrast
- Saves power with dark mode
- Common on mid-range and flagship phones

**LCD:**
- A backlight shines through every pixel
- Good colour accuracy, no true blacks
- Cheaper, common on budget phones

**Which is better?**
AMOLED for media and vivid colours; LCD is still perfectly good for everyday use.""",
    ),
]

GENERIC_EXPLANATION = (
    "I'd be happy to explain that phone feature, but I don't have a vetted explanation for it right now.\n\n"
    "You can try:\n"
    "1. Asking about a related spec such as OIS, refresh rate, RAM, storage, 5G or fast charging\n"
    "2. Asking me to compare phones that have this feature\n"
    "3. Telling me your budget so I can recommend phones that include it"
)

MAX_EXPLANATIONS_PER_ANSWER = 2


def match_explanations(query: str) -> List[Explanation]:
    """Return table entries whose pattern matches the query, in table order."""
    normalized = normalize_text(query)
    matched = [entry for entry in EXPLANATIONS if entry.pattern.search(normalized)]
    return matched[:MAX_EXPLANATIONS_PER_ANSWER]


def lookup_explanation(query: str) -> str:
    """Purpose: Render the built-in explanation(s) for a query, if any exist.
    Inputs/Outputs: Input is the user's question; output is markdown or "" when no
        table term matches.
    Side Effects / State: None.
    Dependencies: EXPLANATIONS table.
    Failure Modes: Only the first two matched terms are rendered.
    If Removed: Every explain query would depend on the generation call.
    Testing Notes: "Difference between OIS and EIS" renders both entries.
    """
    # Join the matched entries; two terms cover "X vs Y" questions.
    matched = match_explanations(query)
    return "\n\n---\n\n".join(entry.text for entry in matched)
