#!/usr/bin/env python3
"""
Shared constants for the review reconciliation pipeline

Single source of truth for the curated lookup tables: outlet aliases, critic
typo variants, error-page phrases, wrong-production indicators, rating tables
and the sentiment lexicon.
DO NOT duplicate these tables in other modules - build a ReferenceTables from
them (reconciler.tables) and pass that in instead.
"""

# =============================================================================
# OUTLETS
# =============================================================================

# Canonical outlet id -> lowercase variants that should map to it.
# Matching also tries each side with a leading "the " removed.
OUTLET_ALIASES = {
    'nytimes': [
        'nytimes', 'new york times', 'the new york times', 'ny times', 'nyt',
        'newyorktimes', 'new-york-times', 'the-new-york-times', 'nyt.com',
    ],
    'vulture': [
        'vulture', 'new york magazine / vulture', 'new york magazine/vulture',
        'vult',
    ],
    'variety': ['variety', 'variety magazine'],
    'hollywood-reporter': [
        'hollywood reporter', 'the hollywood reporter', 'thr', 'hollywoodreporter',
    ],
    'deadline': ['deadline', 'deadline hollywood', 'deadline.com'],
    'timeout': [
        'timeout', 'time out', 'time out new york', 'timeout new york',
        'time out ny', 'timeout ny', 'timeout-ny', 'time-out-new-york',
    ],
    'guardian': ['guardian', 'the guardian', 'theguardian'],
    'washpost': [
        'washpost', 'washington post', 'the washington post', 'wapo',
        'wash post', 'washingtonpost',
    ],
    'wsj': [
        'wsj', 'wall street journal', 'the wall street journal',
        'wallstreetjournal', 'wall-street-journal',
    ],
    'nypost': ['nypost', 'new york post', 'ny post', 'nyp', 'newyorkpost', 'new-york-post'],
    'nydailynews': [
        'nydailynews', 'new york daily news', 'daily news', 'ny daily news',
        'nydn', 'newyorkdailynews', 'new-york-daily-news',
    ],
    'ew': ['ew', 'entertainment weekly', 'entertainmentweekly', 'entertainment-weekly'],
    'theatermania': ['theatermania', 'theater mania', 'theatremania', 'theatre mania', 'tmania'],
    'broadwaynews': ['broadwaynews', 'broadway news', 'broadway-news', 'bwaynews'],
    'broadwayworld': ['broadwayworld', 'broadway world', 'bww', 'broadway-world'],
    'playbill': ['playbill', 'play bill'],
    'thewrap': ['thewrap', 'the wrap', 'wrap', 'the-wrap'],
    'indiewire': ['indiewire', 'indie wire', 'indie-wire'],
    'observer': ['observer', 'the observer', 'ny observer', 'new york observer'],
    'newyorker': ['newyorker', 'the new yorker', 'new yorker', 'the-new-yorker'],
    'ap': ['ap', 'associated press', 'the associated press', 'ap news', 'apnews'],
    'reuters': ['reuters'],
    'theatrely': ['theatrely', 'theater ly', 'thly'],
    'nysr': [
        'nysr', 'new york stage review', 'ny stage review',
        'newyorkstagereview', 'new-york-stage-review',
    ],
    'nytg': [
        'nytg', 'new york theatre guide', 'ny theatre guide', 'nytheatreguide',
        'new-york-theatre-guide', 'new york theater guide',
    ],
    'nyt-theater': ['nyt-theater', 'new york theater', 'newyorktheater', 'ny theater', 'new-york-theater'],
    'cititour': ['cititour', 'citi tour', 'city tour'],
    'stageandcinema': ['stageandcinema', 'stage and cinema', 'stage & cinema', 'stage-and-cinema'],
    'talkinbroadway': ['talkinbroadway', 'talkin broadway', "talkin' broadway", 'talkin-broadway'],
    'frontmezzjunkies': ['frontmezzjunkies', 'front mezz junkies', 'front-mezz-junkies', 'fmj'],
    'dailybeast': ['dailybeast', 'the daily beast', 'daily beast', 'tdb', 'the-daily-beast', 'thedailybeast'],
    'usatoday': ['usatoday', 'usa today', 'usa-today'],
    'forward': ['forward', 'the forward', 'jewish forward'],
    'rollingstone': ['rollingstone', 'rolling stone', 'rolling-stone'],
    'chicagotribune': ['chicagotribune', 'chicago tribune', 'chicago-tribune', 'chi tribune'],
    'latimes': ['latimes', 'los angeles times', 'la times', 'los-angeles-times'],
    'thestage': ['thestage', 'the stage', 'stage', 'the-stage'],
    'whatsonstage': ['whatsonstage', "what's on stage", 'whats on stage', 'whatson'],
    'telegraph': ['telegraph', 'the telegraph', 'daily telegraph'],
    'financialtimes': ['financialtimes', 'financial times', 'ft', 'the financial times'],
    'amny': ['amny', 'amnewyork', 'am new york', 'am-new-york'],
    'slantmagazine': ['slantmagazine', 'slant magazine', 'slant', 'slant-magazine'],
    'huffpost': ['huffpost', 'huffington post', 'the huffington post', 'huff post', 'huffingtonpost'],
    'newyorkmagazine': ['newyorkmagazine', 'new york magazine', 'ny magazine', 'ny mag', 'nymag'],
}

OUTLET_DISPLAY_NAMES = {
    'nytimes': 'The New York Times',
    'vulture': 'Vulture',
    'variety': 'Variety',
    'hollywood-reporter': 'The Hollywood Reporter',
    'deadline': 'Deadline',
    'timeout': 'Time Out New York',
    'guardian': 'The Guardian',
    'washpost': 'The Washington Post',
    'wsj': 'The Wall Street Journal',
    'nypost': 'New York Post',
    'nydailynews': 'New York Daily News',
    'ew': 'Entertainment Weekly',
    'theatermania': 'TheaterMania',
    'broadwaynews': 'Broadway News',
    'broadwayworld': 'BroadwayWorld',
    'playbill': 'Playbill',
    'thewrap': 'The Wrap',
    'indiewire': 'IndieWire',
    'observer': 'Observer',
    'newyorker': 'The New Yorker',
    'ap': 'Associated Press',
    'theatrely': 'Theatrely',
    'nysr': 'New York Stage Review',
    'nytg': 'New York Theatre Guide',
    'nyt-theater': 'New York Theater',
    'cititour': 'Cititour',
    'stageandcinema': 'Stage and Cinema',
    'talkinbroadway': "Talkin' Broadway",
    'frontmezzjunkies': 'Front Mezz Junkies',
    'dailybeast': 'The Daily Beast',
    'usatoday': 'USA Today',
    'forward': 'The Forward',
    'rollingstone': 'Rolling Stone',
    'thestage': 'The Stage',
}

# Domain suffixes stripped before an outlet domain is looked up ("nytimes.com" -> "nytimes")
OUTLET_DOMAIN_SUFFIXES = ['.co.uk', '.com', '.org', '.net', '.news']

UNKNOWN_ID = 'unknown'

# =============================================================================
# CRITICS
# =============================================================================

# Normalized critic name -> canonical normalized name (typos and short forms seen in feeds)
CRITIC_ALIASES = {
    'j green': 'jesse green',
    'b brantley': 'ben brantley',
    'johnny oleksinki': 'johnny oleksinski',
    'john oleksinski': 'johnny oleksinski',
    'aramide timubu': 'aramide tinubu',
    'juan a ramirez': 'juan ramirez',
    'zach stewart': 'zachary stewart',
    'jon mandell': 'jonathan mandell',
    'brian lipton': 'brian scott lipton',
    'melissa bernardo': 'melissa rose bernardo',
    'matthew windman': 'matt windman',
    'bob hofler': 'robert hofler',
    'steve suskin': 'steven suskin',
}

# =============================================================================
# SIGHTING FIELDS
# =============================================================================

# Per-source excerpt fields, in preference order for similarity checks
EXCERPT_FIELDS = ['dtliExcerpt', 'bwwExcerpt', 'showScoreExcerpt', 'nycTheatreExcerpt']

# Fields merged first-non-null-wins (excerpts are independent per source)
FIRST_NON_NULL_FIELDS = [
    'url', 'publishDate', 'originalRating', 'originalScore', 'humanReviewScore',
    'designation', 'dtliThumb', 'bwwThumb', 'llmScore', 'ensembleData',
    'dtliUrl', 'bwwUrl', 'bwwRoundupUrl', 'isFullReview',
] + EXCERPT_FIELDS

# Travel together: taken from the first sighting that has an assignedScore
SCORE_FIELDS = ['assignedScore', 'scoreSource', 'scoreDetail', 'scoreConfidence', 'scoreStatus']

# Any of these set on disk means a previous run (or a human) already resolved the review
RESOLVED_FLAGS = ['wrongShow', 'wrongProduction', 'duplicateOf', 'isRoundupArticle']

# =============================================================================
# ERROR PAGES
# =============================================================================

# Captured 404/error page text. Only checked on short fullText (see Thresholds.error_page_max_chars)
ERROR_PAGE_PATTERNS = [
    "it seems we can't find what you're looking for",
    'page not found',
    '404 not found',
    'the page you requested could not be found',
    'this page is no longer available',
    'we could not find the page',
    'sorry, the page you were looking for',
    'perhaps searching can help',
    'the content you are looking for is no longer available',
]

# =============================================================================
# CROSS-SHOW COLLISIONS
# =============================================================================

# Curated wrongId -> correctId pairs for distinct shows the heuristics cannot tell apart.
# Deliberately incomplete: extend when the resolver logs an unresolved collision.
KNOWN_SHOW_MAPPINGS = {
    # Musical adaptations vs the play/novel stagings they share a title with
    'water-for-elephants-play': 'water-for-elephants-2024',
    'the-outsiders-play': 'the-outsiders-2024',
    # Same production registered twice under different slugs
    'queen-of-versailles': 'queen-versailles-2025',
}

CONFIDENCE_ORDER = ['certain', 'high', 'medium', 'low']

# Confidence levels that are acted on in apply mode
APPLY_CONFIDENCE = ('certain', 'high')

# =============================================================================
# WRONG-PRODUCTION INDICATORS
# =============================================================================

# Per-revival indicator tables: terms that SHOULD appear for this production and
# terms that point to an earlier production. min_wrong_indicators defaults to 2.
WRONG_PRODUCTION_INDICATORS = {
    'our-town-2024': {
        'expected_indicators': ['2024', 'Barrymore Theatre', 'Jim Parsons', 'Zoey Deutch', 'Kenny Leon', 'Katie Holmes'],
        'wrong_indicators': ['2002', 'Booth Theatre', 'Paul Newman', '2003', '1988', 'Spalding Gray', 'Lincoln Center'],
        'min_wrong_indicators': 1,  # distinctive enough
    },
    'suffs-2024': {
        'expected_indicators': ['2024', 'Music Box Theatre', 'Broadway', 'Shaina Taub', 'Nikki M. James', 'Jenn Colella'],
        'wrong_indicators': ['2022', 'Public Theater', 'off-Broadway', 'off Broadway', 'downtown'],
        'min_wrong_indicators': 2,
    },
    'the-whos-tommy-2024': {
        'expected_indicators': ['2024', 'Nederlander Theatre', 'Ali Louis Bourzgui', 'Adam Jacobs', 'Alison Luff'],
        'wrong_indicators': ['2019', 'Kennedy Center', 'Casey Cott', '1993', 'St. James Theatre',
                             'Michael Cerveris', 'Marcia Mitzman'],
        'min_wrong_indicators': 2,
    },
    'cabaret-2024': {
        'expected_indicators': ['2024', 'August Wilson Theatre', 'Eddie Redmayne', 'Gayle Rankin', 'Kit Kat Club',
                                'Rebecca Frecknall'],
        'wrong_indicators': ['1998', 'Studio 54', 'Alan Cumming', 'Natasha Richardson', 'Sam Mendes', 'Roundabout',
                             '1966', 'Jill Haworth'],
        'min_wrong_indicators': 2,
    },
    'merrily-we-roll-along-2023': {
        'expected_indicators': ['2023', 'Hudson Theatre', 'Jonathan Groff', 'Daniel Radcliffe', 'Lindsay Mendez',
                                'Maria Friedman'],
        'wrong_indicators': ['1981', 'Alvin Theatre', 'Jim Walton', 'Lonny Price', 'Ann Morrison', 'Off-Broadway',
                             'York Theatre'],
        'min_wrong_indicators': 2,
    },
    'hadestown-2019': {
        'expected_indicators': ['2019', 'Walter Kerr Theatre', 'Broadway', 'Reeve Carney', 'Eva Noblezada',
                                'Patrick Page'],
        'wrong_indicators': ['2016', 'New York Theatre Workshop', 'NYTW', 'off-Broadway', 'Citadel Theatre', '2017'],
        'min_wrong_indicators': 1,
    },
    'doubt-2024': {
        'expected_indicators': ['2024', 'Todd Haimes Theatre', 'Amy Ryan', 'Liev Schreiber', 'Zoe Kazan'],
        'wrong_indicators': ['2005', 'Walter Kerr Theatre', 'Cherry Jones', "Brian F. O'Byrne", 'Heather Goldenhersh'],
        'min_wrong_indicators': 2,
    },
    'an-enemy-of-the-people-2024': {
        'expected_indicators': ['2024', 'Circle in the Square', 'Jeremy Strong', 'Sam Gold', 'Michael Imperioli'],
        'wrong_indicators': ['1971', 'Vivian Beaumont', 'Stephen Elliott', 'Impossible Dreams', 'Off-Broadway'],
        'min_wrong_indicators': 2,
    },
    'appropriate-2023': {
        'expected_indicators': ['2023', '2024', 'Hayes Theater', 'Sarah Paulson', 'Corey Stoll', 'Lila Neugebauer'],
        'wrong_indicators': ['2014', 'Signature Theatre', 'Mark Barton', 'Off-Broadway'],
        'min_wrong_indicators': 2,
    },
    'the-wiz-2024': {
        'expected_indicators': ['2024', 'Marquis Theatre', 'Wayne Brady', 'Deborah Cox', 'Amber Ruffin'],
        'wrong_indicators': ['1975', 'Majestic Theatre', 'Stephanie Mills', 'Andre De Shields', 'Geoffrey Holder'],
        'min_wrong_indicators': 2,
    },
    'purlie-victorious-2023': {
        'expected_indicators': ['2023', 'Music Box Theatre', 'Leslie Odom Jr.', 'Kara Young', 'Heather Headley'],
        'wrong_indicators': ['1961', 'Cort Theatre', 'Ossie Davis', 'Ruby Dee', 'Godfrey Cambridge'],
        'min_wrong_indicators': 2,
    },
}

# Frequently revived titles; a year-suffixed show whose title contains one is treated as a revival
CLASSIC_REVIVAL_TITLES = [
    'our town', 'cabaret', 'chicago', 'the wiz', 'tommy', 'doubt',
    'enemy of the people', 'uncle vanya', "long day's journey",
    'death of a salesman', 'gypsy', 'carousel', 'oklahoma',
    'sweeney todd', 'west side story', 'hello dolly', 'the music man',
    'fiddler on the roof', 'merrily we roll along', 'company', 'follies',
    'ragtime', 'chess', 'mamma mia', 'purlie', 'appropriate',
]

# Venue/transfer language near a wrong indicator: the critic is describing the run's history
TRANSFER_PHRASES = [
    'moving to', 'transferring to', 'transferred to', 'moves to',
    'relocated to', 'before moving', 'after transferring',
    'transfer from', 'moved from', 'originally at', 'premiered at',
    'debuted at', 'opened at', 'prior to', 'previous production',
]

# Historical-comparison language near a wrong indicator
HISTORICAL_PHRASES = [
    'originally', 'first production', 'premiere', 'debut',
    'in the original', 'the original production', 'when it first',
    'back in', 'years ago', 'previous revival', 'last revival',
    'originally played by', 'first played by', 'was played by',
    'in the original cast', 'the original cast', 'created the role',
    # "the 1961 reviews", "that 1998 revival"
    'the 19', 'that 19', 'a 19',
    'revival led by', 'revival starred', 'revival starring',
    'production starred', 'production starring', 'production directed by',
    'over the years', 'has become', 'has been', 'history of',
    'remounted', 'revived in', 'was revived', 'returned to broadway',
    'film adaptation', 'movie version', 'film version',
    'won the tony', 'tony award', 'won a tony',
]

# London venues; a mention is an advisory sign of a West End (wrong geography) review
WEST_END_VENUES = [
    'Phoenix Theatre', 'Piccadilly Theatre', 'Prince Edward Theatre',
    'Prince of Wales Theatre', 'Dominion Theatre', 'Adelphi Theatre',
    'Gielgud Theatre', 'Savoy Theatre', 'Lyceum Theatre London',
    'London Palladium', 'Theatre Royal Drury Lane', "Wyndham's Theatre",
    'Old Vic', 'Young Vic', 'Barbican', 'Donmar Warehouse',
    'Hampstead Theatre', 'Almeida Theatre',
]

# =============================================================================
# SCORING
# =============================================================================

LETTER_TO_SCORE = {
    'A+': 97, 'A': 93, 'A-': 90,
    'B+': 87, 'B': 83, 'B-': 80,
    'C+': 77, 'C': 73, 'C-': 70,
    'D+': 55, 'D': 50, 'D-': 45,
    'F': 30,
}

THUMB_TO_SCORE = {'Up': 80, 'Meh': 60, 'Flat': 60, 'Down': 35}

STARS_OUT_OF_5 = {
    5: 100, 4.5: 90, 4: 80, 3.5: 70, 3: 60,
    2.5: 50, 2: 40, 1.5: 30, 1: 20, 0.5: 10, 0: 0,
}

STARS_OUT_OF_4 = {
    4: 100, 3.5: 88, 3: 75, 2.5: 63, 2: 50,
    1.5: 38, 1: 25, 0.5: 13, 0: 0,
}

# Editorial designation -> fixed score
DESIGNATION_TO_SCORE = {'Critics_Pick': 88}

# Sentiment lexicon tiers: (name, keywords, weight, polarity)
SENTIMENT_TIERS = [
    ('strong_positive', ['masterpiece', 'brilliant', 'extraordinary', 'magnificent', 'stunning', 'superb',
                         'phenomenal', 'triumphant', 'dazzling', 'must-see', 'must see', 'unmissable',
                         'transcendent', 'unforgettable', 'thrilling', 'sensational'], 2.0, 'positive'),
    ('positive', ['excellent', 'wonderful', 'delightful', 'captivating', 'enchanting', 'entertaining',
                  'enjoyable', 'impressive', 'remarkable', 'terrific', 'fantastic', 'great', 'lovely',
                  'gorgeous', 'beautiful', 'touching', 'moving', 'powerful', 'clever', 'witty', 'smart',
                  'inventive'], 1.5, 'positive'),
    ('mixed_positive', ['solid', 'good', 'pleasant', 'satisfying', 'decent', 'fine', 'nice', 'charming',
                        'capable', 'competent', 'adequate', 'respectable'], 1.0, 'positive'),
    ('mixed', ['uneven', 'mixed', 'inconsistent', 'flawed but', 'despite', 'however', 'problematic',
               'hit and miss', 'hit-and-miss'], 0.5, 'negative'),
    ('negative', ['disappointing', 'tedious', 'dull', 'boring', 'lackluster', 'forgettable', 'mediocre',
                  'weak', 'fails', 'misses', 'falls flat', 'underwhelming', 'predictable', 'tired',
                  'stale'], 1.5, 'negative'),
    ('strong_negative', ['awful', 'terrible', 'disaster', 'waste', 'avoid', 'painful', 'unbearable', 'worst',
                         'atrocious', 'dreadful'], 2.0, 'negative'),
]

# Positive-ratio bands, checked top-down: (ratio strictly above, score, method, confidence)
SENTIMENT_BANDS = [
    (0.85, 88, 'sentiment-strong-positive', 'medium'),
    (0.70, 80, 'sentiment-positive', 'medium'),
    (0.55, 72, 'sentiment-mixed-positive', 'low'),
    (0.45, 65, 'sentiment-mixed', 'low'),
    (0.30, 55, 'sentiment-mixed-negative', 'low'),
    (0.15, 45, 'sentiment-negative', 'medium'),
    (None, 35, 'sentiment-strong-negative', 'medium'),
]

TO_BE_CALCULATED = 'TO_BE_CALCULATED'

# Every assigned score names exactly one of these
SCORE_SOURCE_LLM = 'llm-ensemble'
SCORE_SOURCE_GRADE = 'extracted-grade'
SCORE_SOURCE_THUMB = 'thumb'
SCORE_SOURCE_DESIGNATION = 'designation'
SCORE_SOURCE_SENTIMENT = 'sentiment'
SCORE_SOURCES = [
    SCORE_SOURCE_LLM, SCORE_SOURCE_GRADE, SCORE_SOURCE_THUMB,
    SCORE_SOURCE_DESIGNATION, SCORE_SOURCE_SENTIMENT,
]

# Sources written by the old bulk default; their scores are rescored, never trusted
PLACEHOLDER_SCORE_SOURCES = ['default', 'placeholder', 'default-50']

# =============================================================================
# REVIEW STATE
# =============================================================================

# Forward-only lifecycle of a review file
STATE_UNRESOLVED = 'unresolved'
STATE_FLAGGED = 'flagged'
STATE_DELETED = 'deleted'
REVIEW_STATES = [STATE_UNRESOLVED, STATE_FLAGGED, STATE_DELETED]
